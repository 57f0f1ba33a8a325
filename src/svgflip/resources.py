from functools import lru_cache
from importlib import resources


@lru_cache(maxsize=None)
def _load_template(name: str) -> str:
    with resources.files(__package__).joinpath(f"data/{name}").open("r", encoding="utf-8") as fh:
        return fh.read().strip()


def load_preload_fragment() -> str:
    return _load_template("preload_fragment.html")


def load_preload_item() -> str:
    return _load_template("preload_item.html")
