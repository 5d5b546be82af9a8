from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.models.config import EnvConfig

PINECONE_API_VERSION = "2024-07"
# topK ceiling of the query API
FETCH_ALL_TOP_K = 10000


class RAGClientPinecone(RAGClientInterface):
    """Pinecone data plane. BASE_URL is the index host, e.g. https://my-index-abc.svc.pinecone.io."""

    def _get_engine_name(self) -> str:
        return "Pinecone"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL"),
            EnvConfig(env_key="API_KEY", secret=True),
            EnvConfig(env_key="NAMESPACE", default=""),
        ]

    def _get_auth_header(self) -> dict:
        return {"Api-Key": self.get_config("API_KEY"), "X-Pinecone-API-Version": PINECONE_API_VERSION}

    ################ ENDPOINTS ##################
    def _get_endpoint_healthcheck(self) -> str:
        return "/describe_index_stats"

    def _get_endpoint_upsert(self) -> str:
        return "/vectors/upsert"

    def _get_endpoint_query(self) -> str:
        return "/query"

    def _get_endpoint_delete(self) -> str:
        return "/vectors/delete"

    ################ WIRE FORMAT ##################
    def _scoped(self, body: dict) -> dict:
        namespace = self.get_config("NAMESPACE")
        return {**body, "namespace": namespace} if namespace else body

    def _build_upsert_body(self, points: list[VectorPoint]) -> dict:
        return self._scoped({
            "vectors": [{"id": point.id, "values": point.values, "metadata": point.metadata.to_payload()} for point in points]
        })

    def _build_query_body(self, vector: list[float], top_k: int, include_metadata: bool, include_values: bool) -> dict:
        return self._scoped({
            "vector": vector,
            "topK": top_k,
            "includeMetadata": include_metadata,
            "includeValues": include_values,
        })

    def _build_delete_body(self, ids: list[str]) -> dict:
        return self._scoped({"ids": ids})

    def _parse_query_response(self, data: dict) -> list[QueryMatch]:
        return [
            QueryMatch(
                id=str(match.get("id", "")),
                score=match.get("score", 0.0),
                metadata=match.get("metadata") or {},
                values=match.get("values") or None,
            )
            for match in data.get("matches") or []
        ]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def _probe(self, include_values: bool) -> list[QueryMatch]:
        # the query API has no scan, a zero vector with the maximum topK is the closest thing
        matches = await self.do_query([0.0] * self.dimensions, top_k=FETCH_ALL_TOP_K, include_values=include_values)
        if len(matches) >= FETCH_ALL_TOP_K:
            self.logging.warning("Pinecone probe hit the topK cap of %d, further vectors are not visible.", FETCH_ALL_TOP_K)
        return matches

    async def do_fetch_all(self) -> list[QueryMatch]:
        """All vectors reachable by a zero-vector probe, at most FETCH_ALL_TOP_K."""
        matches = await self._probe(include_values=True)
        self.logging.info("Fetched %d vectors from Pinecone.", len(matches))
        return matches

    async def do_fetch_max_global_index(self) -> int | None:
        return self.max_global_index(await self._probe(include_values=False))
