from shared.clients.ClientManager import ClientManager
from shared.clients.messaging.MessagingClientInterface import MessagingClientInterface


class MessagingClientManager(ClientManager):
    """MESSAGING_ENGINE: "slack", or "none" (default) to run without the webhook integration."""

    client_type = "messaging"
    class_prefix = "MessagingClient"
    default_engine = "none"
    disabled_engine = "none"

    def get_client(self) -> MessagingClientInterface | None:
        return self.client
