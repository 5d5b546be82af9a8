from abc import abstractmethod

from shared.clients.ClientInterface import ClientInterface, ClientResponseError
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Vector similarity index keyed by "chunk_<globalIndex>" ids.

    Engines describe their wire format through the _build_* / _parse_* hooks;
    the request flow (upsert, query, delete, full fetch for rehydrate) lives here.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self.dimensions = helper_config.get_int_val("EMBED_DIMENSIONS", default=3072, minimum=1)

    def _get_client_type(self) -> str:
        return "rag"

    ##########################################
    ############ ENGINE SPECIFIC #############
    ##########################################

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_upsert(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_query(self) -> str:
        pass

    @abstractmethod
    def _get_endpoint_delete(self) -> str:
        pass

    def _get_upsert_method(self) -> str:
        return "POST"

    ################ WIRE FORMAT ##################
    @abstractmethod
    def _build_upsert_body(self, points: list[VectorPoint]) -> dict:
        pass

    @abstractmethod
    def _build_query_body(self, vector: list[float], top_k: int, include_metadata: bool, include_values: bool) -> dict:
        pass

    @abstractmethod
    def _build_delete_body(self, ids: list[str]) -> dict:
        pass

    @abstractmethod
    def _parse_query_response(self, data: dict) -> list[QueryMatch]:
        """Matches in the order the index ranked them, best first."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_prepare_index(self) -> None:
        """Create the index if the engine needs that before the first upsert. Managed indexes do nothing."""
        return None

    async def do_upsert_vectors(self, points: list[VectorPoint]) -> None:
        """Insert vectors, replacing any stored under the same id.

        Raises:
            ClientResponseError: If the index rejects the batch.
        """
        if points:
            await self.do_request_json(self._get_upsert_method(), self._get_endpoint_upsert(), json=self._build_upsert_body(points))

    async def do_query(
        self,
        vector: list[float],
        top_k: int,
        include_metadata: bool = True,
        include_values: bool = False,
    ) -> list[QueryMatch]:
        """Nearest ``top_k`` vectors, best match first.

        Raises:
            ClientResponseError: If the index rejects the query.
        """
        body = self._build_query_body(vector, top_k, include_metadata, include_values)
        return self._parse_query_response(await self.do_request_json("POST", self._get_endpoint_query(), json=body))

    async def do_delete_ids(self, ids: list[str]) -> None:
        """Delete vectors by id. Ids the index does not know are ignored.

        Raises:
            ClientResponseError: On any failure other than 404.
        """
        if not ids:
            return
        try:
            await self.do_request_json("POST", self._get_endpoint_delete(), json=self._build_delete_body(ids))
        except ClientResponseError as exc:
            if exc.status_code != 404:
                raise
            self.logging.debug("Ids %s not present in %s, nothing to delete.", ids, self.get_engine_name())

    @abstractmethod
    async def do_fetch_all(self) -> list[QueryMatch]:
        """Every stored vector with values and metadata, unordered."""
        pass

    async def do_fetch_max_global_index(self) -> int | None:
        """Highest globalIndex in the index, None when empty. Engines with a cheaper probe override this."""
        return self.max_global_index(await self.do_fetch_all())

    ##########################################
    ############### HELPERS ##################
    ##########################################

    @staticmethod
    def read_global_index(match: QueryMatch) -> int | None:
        """globalIndex from the metadata, or parsed from a "chunk_<n>" id when the metadata lacks it."""
        try:
            return int(match.metadata.get("globalIndex"))
        except (TypeError, ValueError):
            pass
        prefix, _, number = match.id.partition("_")
        return int(number) if prefix == "chunk" and number.isdigit() else None

    @classmethod
    def max_global_index(cls, matches: list[QueryMatch]) -> int | None:
        indices = [index for index in map(cls.read_global_index, matches) if index is not None]
        return max(indices, default=None)
