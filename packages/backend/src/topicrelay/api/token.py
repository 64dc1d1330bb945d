"""Credential API — POST /api/token.

Learn: anyone may ask for a credential for any user name; the relay
does not authenticate users. The token only proves to the broker that
the relay minted it.
"""

import structlog
from fastapi import APIRouter, Depends, HTTPException

from topicrelay.api.dependencies import get_issuer
from topicrelay.auth.credentials import CredentialError, CredentialIssuer, InvalidUserError
from topicrelay.schemas.message import TokenRequest, TokenResponse

logger = structlog.get_logger()
router = APIRouter()


@router.post("/token", response_model=TokenResponse)
async def get_token(body: TokenRequest, issuer: CredentialIssuer = Depends(get_issuer)):
    """Issue a 24h connection credential for the given user."""
    try:
        credential = issuer.issue(body.user)
    except InvalidUserError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except CredentialError as e:
        logger.error("relay.token_failed", user=body.user, error=str(e))
        raise HTTPException(status_code=500, detail="Failed to generate token")

    logger.info("relay.token_issued", user=credential.subject)
    return TokenResponse(token=credential.token)
