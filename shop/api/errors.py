# shop/api/errors.py
from contextlib import contextmanager

from fastapi import HTTPException

from shop.domain.errors import (
    ConcurrentModification,
    GatewayError,
    GatewayUnavailable,
    InvalidTransition,
    NotFound,
    OutOfStock,
    RefundExceedsAvailable,
    SignatureVerificationFailed,
    ValidationError,
)

#kolejnosc ma znaczenie - podklasy przed klasami bazowymi
_STATUS_CODES = (
    (SignatureVerificationFailed, 400),
    (ValidationError, 400),
    (OutOfStock, 400),
    (RefundExceedsAvailable, 400),
    (NotFound, 404),
    (PermissionError, 403),
    (InvalidTransition, 409),
    (ConcurrentModification, 409),
    (GatewayUnavailable, 503),
    (GatewayError, 502),
)


@contextmanager
def domain_errors():
    """Tlumaczy bledy domenowe na HTTPException."""
    try:
        yield
    except tuple(exc for exc, _ in _STATUS_CODES) as e:
        for exc, code in _STATUS_CODES:
            if isinstance(e, exc):
                raise HTTPException(status_code=code, detail=str(e)) from e
        raise
