import importlib

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class ClientManager:
    """Picks the engine named in ``<CLIENT_TYPE>_ENGINE`` and instantiates its client.

    The client for engine ``foo`` of type ``rag`` is expected as class
    ``RAGClientFoo`` in ``shared.clients.rag.foo.RAGClientFoo``.
    """

    client_type: str = ""
    class_prefix: str = ""
    default_engine: str | None = None
    # engine value that switches the integration off
    disabled_engine: str | None = None

    def __init__(self, helper_config: HelperConfig):
        self.helper_config = helper_config
        self.logging = helper_config.get_logger()
        self.client = self._initialize_client()

    def _get_engine_from_env(self) -> str | None:
        engine = self.helper_config.get_string_val(f"{self.client_type.upper()}_ENGINE", default=self.default_engine)
        engine = engine.strip().lower()
        return None if engine == self.disabled_engine else engine

    def _initialize_client(self) -> ClientInterface | None:
        """
        Raises:
            ValueError: If no client class exists for the configured engine.
        """
        engine = self._get_engine_from_env()
        if engine is None:
            self.logging.info("%s engine set to '%s', integration disabled.", self.client_type.upper(), self.disabled_engine)
            return None

        class_name = f"{self.class_prefix}{engine.capitalize()}"
        try:
            module = importlib.import_module(f"shared.clients.{self.client_type}.{engine}.{class_name}")
            client_class = getattr(module, class_name)
        except (ImportError, AttributeError) as e:
            raise ValueError(f"Unsupported {self.client_type.upper()} engine '{engine}'. Error: {e}")

        client = client_class(helper_config=self.helper_config)
        self.logging.debug("Instantiated %s for engine '%s'.", class_name, engine)
        return client

    def get_client(self):
        return self.client
