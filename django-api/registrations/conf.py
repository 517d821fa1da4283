"""Registration engine settings read from Django settings."""

from dataclasses import dataclass
from decimal import Decimal

from django.conf import settings


@dataclass(frozen=True)
class RegistrationSettings:
    app_base_url: str = "http://localhost:3000"
    currency: str = "usd"
    default_platform_fee_percent: Decimal = Decimal("1")
    code_length: int = 8
    code_max_attempts: int = 5
    from_email: str = "no-reply@example.com"

    @classmethod
    def from_django(cls) -> "RegistrationSettings":
        return cls(
            app_base_url=getattr(settings, "REGISTRATION_APP_BASE_URL", cls.app_base_url).rstrip("/"),
            currency=getattr(settings, "REGISTRATION_CURRENCY", cls.currency),
            default_platform_fee_percent=Decimal(
                str(
                    getattr(
                        settings,
                        "REGISTRATION_DEFAULT_PLATFORM_FEE_PERCENT",
                        cls.default_platform_fee_percent,
                    )
                )
            ),
            code_length=int(getattr(settings, "REGISTRATION_CODE_LENGTH", cls.code_length)),
            code_max_attempts=int(
                getattr(settings, "REGISTRATION_CODE_MAX_ATTEMPTS", cls.code_max_attempts)
            ),
            from_email=getattr(
                settings,
                "REGISTRATION_FROM_EMAIL",
                getattr(settings, "DEFAULT_FROM_EMAIL", cls.from_email),
            ),
        )
