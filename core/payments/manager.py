from __future__ import annotations

from threading import Lock

from core.payments.callback_verifier import CallbackVerifier
from core.payments.contracts import AuditLog, InvoiceStore
from core.payments.invoice_ids import InvoiceIdGenerator
from core.payments.request_builder import PaymentRequestBuilder
from core.payments.types import CrossPayConfig
from core.settings import get_settings


class CrossPayGateway:
    _instance: "CrossPayGateway | None" = None
    _lock = Lock()

    def __init__(
        self,
        *,
        config: CrossPayConfig,
        store: InvoiceStore,
        audit_log: AuditLog,
        id_generator: InvoiceIdGenerator,
    ) -> None:
        self._config = config
        self._store = store
        self.request_builder = PaymentRequestBuilder(config=config, store=store, id_generator=id_generator)
        self.callback_verifier = CallbackVerifier(config=config, store=store, audit_log=audit_log)

    @classmethod
    def configure(cls, gateway: "CrossPayGateway") -> "CrossPayGateway":
        with cls._lock:
            cls._instance = gateway
            return cls._instance

    @classmethod
    def configure_from_settings(cls, *, store: InvoiceStore, audit_log: AuditLog) -> "CrossPayGateway":
        settings = get_settings()
        return cls.configure(
            cls(
                config=CrossPayConfig.from_settings(settings),
                store=store,
                audit_log=audit_log,
                id_generator=InvoiceIdGenerator(
                    prefix=settings.invoice_id_prefix,
                    length=settings.invoice_id_length,
                ),
            )
        )

    @classmethod
    def get_instance(cls) -> "CrossPayGateway":
        if cls._instance is None:
            raise RuntimeError("CrossPay gateway is not configured")
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        with cls._lock:
            cls._instance = None

    @property
    def config(self) -> CrossPayConfig:
        return self._config

    @property
    def store(self) -> InvoiceStore:
        return self._store
