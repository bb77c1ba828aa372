from .webhook_service import WebhookService


__all__ = ["WebhookService"]
