from urllib.parse import quote

from pydantic import BaseModel, ConfigDict

import config


class Title(BaseModel):
    model_config = ConfigDict(frozen=True)

    namespace: int
    dbkey: str

    @property
    def text(self) -> str:
        return self.dbkey.replace("_", " ")

    @property
    def prefixed_text(self) -> str:
        ns_name = config.NAMESPACE_NAMES.get(self.namespace)
        if ns_name is None:
            ns_name = f"Namespace {self.namespace}"
        if not ns_name:
            return self.text
        return f"{ns_name}:{self.text}"

    @property
    def url(self) -> str:
        return config.ARTICLE_PATH + quote(self.prefixed_text.replace(" ", "_"), safe="/:")
