from pydantic import BaseModel


class EnvConfig(BaseModel):
    """
    A single engine-scoped setting a client needs before it can boot.

    The full variable name is built by the client as
    ``<CLIENT_TYPE>_<ENGINE>_<env_key>``, e.g. ``RAG_PINECONE_API_KEY``.

    Attributes:
        env_key (str): The engine-relative key, e.g. "BASE_URL".
        val_type (str): Expected value type: "string", "number", "int" or "bool".
        default (str | int | float | bool | None): Fallback value. None marks the setting as mandatory.
        secret (bool): True for credentials; the value is never written to the log.
    """

    env_key: str
    val_type: str = "string"
    default: str | int | float | bool | None = None
    secret: bool = False
