from __future__ import annotations

PLATE_FORMAT_HINT = "Informe a placa do veículo no formato AAA0X00 ou AAA9999"


class ValorRealError(Exception):
    """Base for errors that map onto an HTTP response."""

    status_code = 500

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_body(self) -> dict[str, str]:
        body = {"error": self.message}
        if self.hint:
            body["message"] = self.hint
        return body


class InvalidPlateError(ValorRealError):
    status_code = 400

    def __init__(self, message: str = "Formato de placa inválido. Use o formato AAA0X00 ou AAA9999") -> None:
        super().__init__(message, hint=PLATE_FORMAT_HINT)


class MissingCredentialError(ValorRealError):
    status_code = 503

    def __init__(self, message: str = "API_TOKEN não configurado") -> None:
        super().__init__(message)


class ProviderRejectedError(ValorRealError):
    """The provider answered but reported a lookup failure in its body."""


class ProviderUnreachableError(ValorRealError):
    """Connection or timeout failure; plausibly transient."""

    def __init__(self, message: str = "Erro ao conectar com a API Placas. Tente novamente.") -> None:
        super().__init__(message)


class ProviderError(ValorRealError):
    def __init__(self, message: str, *, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status
