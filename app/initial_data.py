# app/initial_data.py
from contextlib import asynccontextmanager

from sqlalchemy import func, select, text
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.logging import get_logger
from app.db.session_async import AsyncSessionLocal
from app.models.order import PaymentMethod
from app.models.user import User
from app.schemas.user import UserCreate
from app.services import user_service

logger = get_logger("app.bootstrap")

DEFAULT_PAYMENT_METHODS = (("pix", "PIX"),)


@asynccontextmanager
async def _advisory_lock(session: AsyncSession):
    """
    Evita carreras en entornos multi-worker (PostgreSQL).
    No hace nada en SQLite/otros dialectos.
    """
    dialect = session.bind.dialect.name if session.bind else "unknown"
    lock_key = 987654321  # cualquier entero estable
    got_lock = False
    try:
        if dialect == "postgresql":
            res = await session.execute(text("SELECT pg_try_advisory_lock(:k)"), {"k": lock_key})
            got_lock = bool(res.scalar())
            if not got_lock:
                logger.info("Otro worker ya está inicializando datos; salto esta instancia.")
                yield False
                return
        yield True
    finally:
        if got_lock:
            await session.execute(text("SELECT pg_advisory_unlock(:k)"), {"k": lock_key})


async def ensure_payment_methods(session: AsyncSession) -> int:
    """Crea los medios de pago por defecto que falten. Devuelve cuántos creó."""
    created = 0
    for identifier, name in DEFAULT_PAYMENT_METHODS:
        existing = await session.execute(
            select(PaymentMethod.id).where(PaymentMethod.identifier == identifier).limit(1)
        )
        if existing.scalar_one_or_none() is None:
            session.add(PaymentMethod(identifier=identifier, name=name, is_enabled=True))
            created += 1
    if created:
        await session.flush()
    return created


async def _ensure_admin(session: AsyncSession) -> None:
    stmt = select(func.count()).select_from(User).where(User.is_superuser.is_(True))
    result = await session.execute(stmt)
    if (result.scalar() or 0) > 0:
        logger.info("Ya existe al menos un superusuario; no se crea otro.")
        return

    existing = await user_service.get_by_email(session, str(settings.INITIAL_ADMIN_EMAIL))
    if existing:
        # Promoción explícita (idempotente)
        existing.is_superuser = True
        session.add(existing)
        logger.warning(
            "Usuario inicial ya existía sin permisos; promovido a superadmin.",
            extra={"user_id": str(existing.id)},
        )
        return

    user_in = UserCreate(
        email=str(settings.INITIAL_ADMIN_EMAIL),
        password=settings.INITIAL_ADMIN_PASSWORD,
        full_name="Initial Admin",
    )
    user = await user_service.create_user(session, user_in, is_superuser=True)
    logger.info("Superadmin creado correctamente.", extra={"user_id": str(user.id)})


async def init_data() -> None:
    """
    Datos mínimos para operar: medios de pago y, si hay credenciales en env,
    el admin inicial. Es idempotente, con protección a carreras (en Postgres).
    """
    async with AsyncSessionLocal() as session:
        async with _advisory_lock(session) as proceed:
            if proceed is False:
                return

            created = await ensure_payment_methods(session)
            if created:
                logger.info("Medios de pago creados.", extra={"count": created})

            if settings.INITIAL_ADMIN_EMAIL and settings.INITIAL_ADMIN_PASSWORD:
                await _ensure_admin(session)
            else:
                logger.info("Skipping admin init: faltan INITIAL_ADMIN_EMAIL o INITIAL_ADMIN_PASSWORD.")

            await session.commit()
