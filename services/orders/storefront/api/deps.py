from typing import Iterator, Optional
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from storefront.application.service import OrderOrchestrator
from storefront.auth_local import Principal, decode_access_token
from storefront.infrastructure.catalog import SqlCatalogReader
from storefront.infrastructure.store import SqlOrderStore
from shared.core import get_logger, set_request_context

logger = get_logger(__name__)

BEARER_PREFIX = "Bearer "

def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()

def get_principal(request: Request) -> Optional[Principal]:
    """Caller identity from the bearer token, or None when absent or invalid.

    Operations decide whether an identity is required.
    """
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        return None
    token = auth_header[len(BEARER_PREFIX):].strip()
    if not token:
        return None
    principal = decode_access_token(token, request.app.state.settings)
    if principal is None:
        logger.warning("Bearer token verification failed")
        return None
    set_request_context(user_id=principal.id)
    return principal

def get_catalog(request: Request, db: Session = Depends(get_db)):
    remote = request.app.state.remote_catalog
    return remote if remote is not None else SqlCatalogReader(db)

def get_orchestrator(
    request: Request,
    db: Session = Depends(get_db),
    catalog=Depends(get_catalog),
) -> OrderOrchestrator:
    state = request.app.state
    return OrderOrchestrator(
        catalog=catalog,
        store=SqlOrderStore(db),
        gateway=state.payment_gateway,
        webhook_secret=state.settings.STRIPE_WEBHOOK_SECRET,
    )
