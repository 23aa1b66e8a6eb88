# Infrastructure clients
from clients.vault_client import (
    VaultClient,
    VaultError,
    get_database_url,
    get_invoicing_config,
    get_email_config,
)
from clients.postgres_client import PostgresClient
from clients.email_client import EmailDeliveryClient, EmailDeliveryError
from clients.invoicing_client import (
    InvoicingClient,
    InvoicingError,
    InvoicingAuthError,
    InvoicingTimeout,
    InvoicingRejected,
)
