"""Backend entrypoint helpers."""

from backend.factory import get_transaction_service


def create_backend_services() -> dict[str, object]:
    """Factory for backend service objects used by API or local integrations."""
    return {"transaction_service": get_transaction_service()}
