"""
Client-correctable errors raised by the cart and promo-code services.

They are HTTPExceptions so FastAPI renders them directly as
{"detail": "..."} with the matching status code. None of them is retried.
"""

from fastapi import HTTPException


class InvalidIdentifier(HTTPException):
    def __init__(self, name: str):
        super().__init__(status_code=400, detail=f"Invalid {name}")


class InvalidBookingWindow(HTTPException):
    def __init__(self, detail: str = "Drop-off must be after pick-up"):
        super().__init__(status_code=400, detail=detail)


class InsufficientInventory(HTTPException):
    def __init__(self, available: int):
        if available > 0:
            detail = f"Only {available} motorcycles available"
        else:
            detail = "Motorcycle is Out of Stock"
        super().__init__(status_code=400, detail=detail)
        self.available = available


class CouponIneligible(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)


class ItemNotFound(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=404, detail=detail)


class DuplicatePromoCode(HTTPException):
    def __init__(self, code: str):
        super().__init__(status_code=409, detail=f"Coupon with code {code} already exists")


class InvalidPromoCode(HTTPException):
    def __init__(self, detail: str):
        super().__init__(status_code=400, detail=detail)
