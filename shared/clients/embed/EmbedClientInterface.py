from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface
from shared.helper.HelperConfig import HelperConfig


class EmbedClientInterface(ClientInterface):
    """Text-in / vector-out embedding engine.

    Model and dimensionality are engine independent (EMBED_MODEL, EMBED_DIMENSIONS).
    Every returned vector must have exactly ``embed_dimensions`` entries or it
    could not live next to the vectors already in the index.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.embed_model = helper_config.get_string_val("EMBED_MODEL", default=self._get_default_model())
        self.embed_dimensions = helper_config.get_int_val("EMBED_DIMENSIONS", default=3072, minimum=1)

    def _get_client_type(self) -> str:
        return "embed"

    ##########################################
    ############ ENGINE SPECIFIC #############
    ##########################################

    @abstractmethod
    def _get_default_model(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_embed(self) -> str:
        pass

    @abstractmethod
    def _build_embed_body(self, texts: list[str]) -> dict:
        """Request body for one batch of texts."""
        pass

    @abstractmethod
    def _parse_embed_response(self, data: dict) -> list[list[float]]:
        """Vectors from a response body, in input order.

        Raises:
            ValueError: If the body holds no usable vectors.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_embed(self, texts: list[str] | str) -> list[list[float]]:
        """Embed one text or a batch of texts.

        Returns:
            list[list[float]]: One vector per input text, same order.

        Raises:
            ClientResponseError: On a non-2xx answer.
            ValueError: On a missing vector or a vector of the wrong size.
        """
        batch = [texts] if isinstance(texts, str) else list(texts)
        data = await self.do_request_json("POST", self._get_endpoint_embed(), json=self._build_embed_body(batch))
        vectors = self._parse_embed_response(data)

        if len(vectors) != len(batch):
            raise ValueError(f"Expected {len(batch)} embeddings, got {len(vectors)}.")
        wrong = [len(vector) for vector in vectors if len(vector) != self.embed_dimensions]
        if wrong:
            raise ValueError(f"Embedding has {wrong[0]} dimensions, index expects {self.embed_dimensions}.")
        return vectors
