from typing import Any, Callable, Dict, Iterable, Mapping, Optional

from imageresize.schemas import SizeSpec

SizeFilter = Callable[[Dict[str, SizeSpec]], Dict[str, SizeSpec]]


class SizeRegistry:
    """Named sizes configured at startup, passed through registered filters."""

    def __init__(
        self,
        sizes: Optional[Mapping[str, Any]] = None,
        filters: Iterable[SizeFilter] = (),
    ):
        self._base: Dict[str, SizeSpec] = {
            name: spec if isinstance(spec, SizeSpec) else SizeSpec.model_validate(spec)
            for name, spec in (sizes or {}).items()
        }
        self._filters = list(filters)

    def register_filter(self, fn: SizeFilter) -> None:
        self._filters.append(fn)

    def sizes(self) -> Dict[str, SizeSpec]:
        sizes = {name: spec.model_copy(deep=True) for name, spec in self._base.items()}
        for fn in self._filters:
            sizes = fn(sizes)
        return sizes

    def get(self, name: str) -> SizeSpec:
        sizes = self.sizes()
        if name not in sizes:
            raise KeyError(f"Unknown image size: {name}")
        return sizes[name]
