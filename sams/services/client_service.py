"""Client, unit and billing configuration lookups."""

import logging
from decimal import Decimal
from typing import NamedTuple

from sqlalchemy.orm import Session

from sams.api.errors import ConfigurationError, NotFoundError, ValidationError
from sams.models import BillingConfig, BillingModule, Client, Unit

logger = logging.getLogger(__name__)


class PenaltyConfig(NamedTuple):
    """Validated penalty settings for one client module."""

    penalty_rate: Decimal
    penalty_days: int
    fiscal_year_start_month: int


class ClientService:
    """Resolve clients and units by their public codes and load billing settings."""

    def __init__(self, db: Session):
        self.db = db

    def get_client(self, client_code: str) -> Client:
        """Return the client with the given code.

        Raises:
            NotFoundError: If no such client exists
        """
        client = self.db.query(Client).filter(Client.code == client_code).first()
        if not client:
            raise NotFoundError(f"Client {client_code} not found")
        return client

    def get_unit(self, client: Client, unit_code: str) -> Unit:
        """Return a unit of the client by its unit code."""
        unit = (
            self.db.query(Unit)
            .filter(Unit.client_id == client.id, Unit.unit_code == unit_code)
            .first()
        )
        if not unit:
            raise NotFoundError(f"Unit {unit_code} not found for client {client.code}")
        return unit

    def list_units(self, client: Client) -> list[Unit]:
        return self.db.query(Unit).filter(Unit.client_id == client.id).order_by(Unit.unit_code).all()

    def get_billing_config(self, client: Client, module: BillingModule) -> BillingConfig:
        """Return the stored billing config of a module.

        Raises:
            ConfigurationError: If the client has no config for the module
        """
        config = (
            self.db.query(BillingConfig)
            .filter(BillingConfig.client_id == client.id, BillingConfig.module == module)
            .first()
        )
        if not config:
            logger.error("Missing %s billing config for client %s", module.value, client.code)
            raise ConfigurationError(
                f"{module.value} billing configuration not found for client {client.code}"
            )
        return config

    def has_billing_config(self, client: Client, module: BillingModule) -> bool:
        """Whether the client uses a billing module."""
        return (
            self.db.query(BillingConfig.id)
            .filter(BillingConfig.client_id == client.id, BillingConfig.module == module)
            .first()
            is not None
        )

    def get_penalty_config(self, client: Client, module: BillingModule) -> PenaltyConfig:
        """Load and validate the penalty settings of a module."""
        config = self.get_billing_config(client, module)
        return validate_penalty_config(config, client.fiscal_year_start_month)

    def upsert_billing_config(
        self,
        client: Client,
        module: BillingModule,
        penalty_rate: Decimal,
        penalty_days: int,
        rate_per_m3: Decimal | None = None,
        minimum_charge: Decimal | None = None,
        commit: bool = True,
    ) -> BillingConfig:
        """Create or replace the billing config of a module."""
        if penalty_rate < 0 or penalty_days < 0:
            raise ValidationError("Penalty rate and penalty days must not be negative")
        config = (
            self.db.query(BillingConfig)
            .filter(BillingConfig.client_id == client.id, BillingConfig.module == module)
            .first()
        )
        if not config:
            config = BillingConfig(client_id=client.id, module=module)
            self.db.add(config)
        config.penalty_rate = penalty_rate
        config.penalty_days = penalty_days
        config.rate_per_m3 = rate_per_m3
        config.minimum_charge = minimum_charge
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info(
            "Saved %s billing config for %s: rate=%s days=%s",
            module.value,
            client.code,
            penalty_rate,
            penalty_days,
        )
        return config


def validate_penalty_config(config: BillingConfig | None, start_month: int = 1) -> PenaltyConfig:
    """Validate a billing config row for penalty computation.

    Raises:
        ConfigurationError: If the row is missing or the rate/days are unusable
    """
    if config is None:
        raise ConfigurationError("Penalty configuration is missing")
    if config.penalty_rate is None or config.penalty_rate < 0:
        raise ConfigurationError(f"Invalid penalty rate: {config.penalty_rate}")
    if config.penalty_days is None or config.penalty_days < 0:
        raise ConfigurationError(f"Invalid penalty days: {config.penalty_days}")
    return PenaltyConfig(
        penalty_rate=Decimal(str(config.penalty_rate)),
        penalty_days=int(config.penalty_days),
        fiscal_year_start_month=start_month,
    )


__all__ = ["ClientService", "PenaltyConfig", "validate_penalty_config"]
