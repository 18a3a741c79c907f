from typing import Any

from lazywire.lifetimes import Lifetime

DEFAULT_AUTOREGISTER_IGNORES: set[type[Any]] = {
    int,
    str,
    float,
    bool,
    bytes,
    list,
    dict,
    set,
    tuple,
    type,
}

DEFAULT_AUTOREGISTER_LIFETIME = Lifetime.TRANSIENT
