import math
import uuid

from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.clients.rag.models.QueryMatch import QueryMatch
from shared.clients.rag.models.Scroll import ScrollPage
from shared.clients.rag.models.VectorPoint import VectorPoint
from shared.models.config import EnvConfig

SCROLL_PAGE_SIZE = 1000


def make_point_id(vector_id: str) -> str:
    """Qdrant only accepts UUIDs or integers as point ids; "chunk_<n>" maps to a stable UUID5."""
    return str(uuid.uuid5(uuid.NAMESPACE_OID, vector_id))


class RAGClientQdrant(RAGClientInterface):
    """Qdrant REST API. The readable vector id travels in the payload as ``vector_id``."""

    def _get_engine_name(self) -> str:
        return "Qdrant"

    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="BASE_URL"),
            EnvConfig(env_key="API_KEY", default="", secret=True),
            EnvConfig(env_key="COLLECTION", default="chunks"),
            EnvConfig(env_key="DISTANCE", default="Cosine"),
        ]

    def _get_auth_header(self) -> dict:
        api_key = self.get_config("API_KEY")
        return {"api-key": api_key} if api_key else {}

    ################ ENDPOINTS ##################
    def _collection(self, suffix: str = "") -> str:
        return f"/collections/{self.get_config('COLLECTION')}{suffix}"

    def _get_endpoint_healthcheck(self) -> str:
        return "/healthz"

    def _get_endpoint_upsert(self) -> str:
        return self._collection("/points")

    def _get_upsert_method(self) -> str:
        return "PUT"

    def _get_endpoint_query(self) -> str:
        return self._collection("/points/search")

    def _get_endpoint_delete(self) -> str:
        return self._collection("/points/delete")

    ################ WIRE FORMAT ##################
    def _build_upsert_body(self, points: list[VectorPoint]) -> dict:
        return {
            "points": [
                {
                    "id": make_point_id(point.id),
                    "vector": point.values,
                    "payload": {**point.metadata.to_payload(), "vector_id": point.id},
                }
                for point in points
            ]
        }

    def _build_query_body(self, vector: list[float], top_k: int, include_metadata: bool, include_values: bool) -> dict:
        return {"vector": vector, "limit": top_k, "with_payload": include_metadata, "with_vector": include_values}

    def _build_delete_body(self, ids: list[str]) -> dict:
        return {"points": [make_point_id(vector_id) for vector_id in ids]}

    @staticmethod
    def _to_match(point: dict) -> QueryMatch:
        metadata = dict(point.get("payload") or {})
        return QueryMatch(
            id=metadata.pop("vector_id", None) or str(point.get("id", "")),
            score=point.get("score", 0.0),
            metadata=metadata,
            values=point.get("vector") or None,
        )

    def _parse_query_response(self, data: dict) -> list[QueryMatch]:
        return [self._to_match(point) for point in data.get("result") or []]

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_prepare_index(self) -> None:
        """Create the collection with EMBED_DIMENSIONS and DISTANCE if it does not exist."""
        collection = self.get_config("COLLECTION")
        exists = await self.do_request(method="GET", endpoint=self._collection("/exists"))
        if exists.is_success and (exists.json().get("result") or {}).get("exists"):
            self.logging.info("Qdrant collection '%s' already exists.", collection)
            return
        await self.do_request_json(
            "PUT",
            self._collection(),
            json={"vectors": {"size": self.dimensions, "distance": self.get_config("DISTANCE")}},
        )
        self.logging.info("Created Qdrant collection '%s' (%d dims).", collection, self.dimensions)

    async def do_count(self) -> int:
        data = await self.do_request_json("POST", self._collection("/points/count"), json={"exact": True})
        return (data.get("result") or {}).get("count", 0)

    async def do_scroll(self, limit: int, offset: str | int | None = None) -> ScrollPage:
        """One page of points with payload and vector. Pass the previous page's cursor as ``offset``."""
        body = {"limit": limit, "with_payload": True, "with_vector": True}
        if offset is not None:
            body["offset"] = offset
        return ScrollPage.from_response(await self.do_request_json("POST", self._collection("/points/scroll"), json=body))

    async def do_fetch_all(self) -> list[QueryMatch]:
        total = await self.do_count()
        pages = max(1, math.ceil(total / SCROLL_PAGE_SIZE))
        points: list[dict] = []
        offset: str | int | None = None
        page = 0
        while True:
            page += 1
            scroll = await self.do_scroll(limit=SCROLL_PAGE_SIZE, offset=offset)
            points.extend(scroll.points)
            self.logging.info("Scrolled Qdrant page %d of %d (%d of %d points).", page, pages, len(points), total)
            offset = scroll.next_page_offset
            if offset is None:
                break
        return [self._to_match(point) for point in points]
