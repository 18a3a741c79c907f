from textwrap import dedent

MODULE_TEMPLATE = dedent(
    """
    {{ module_docstring_block }}

    from typing import Any


    {{ class_block }}
    """,
).strip()

CLASS_TEMPLATE = dedent(
    """
    class {{ class_name }}({{ base_expression }}):
    {{ class_docstring_block }}

        __slots__ = ("{{ deferred_attribute }}",)

    {{ init_method_block }}
    {% if repr_method_block %}

    {{ repr_method_block }}
    {% endif %}
    {% for member_block in member_blocks %}

    {{ member_block }}
    {% endfor %}
    """,
).strip()

INIT_METHOD_TEMPLATE = dedent(
    """
    def __init__(self, deferred: Any) -> None:
        object.__setattr__(self, "{{ deferred_attribute }}", deferred)
    """,
).strip()

REPR_METHOD_TEMPLATE = dedent(
    """
    def __repr__(self) -> str:
        state = self.{{ deferred_attribute }}.state.value
        return f"<lazy {_contract.__qualname__} proxy: {state}>"
    """,
).strip()

HASH_METHOD_TEMPLATE = dedent(
    """
    def __hash__(self) -> int:
        return hash(self.{{ deferred_attribute }}.get())
    """,
).strip()

SYNC_METHOD_TEMPLATE = dedent(
    """
    def {{ name }}(self, /, *args: Any, **kwargs: Any) -> Any:
        return self.{{ deferred_attribute }}.get().{{ name }}(*args, **kwargs)
    """,
).strip()

ASYNC_METHOD_TEMPLATE = dedent(
    """
    async def {{ name }}(self, /, *args: Any, **kwargs: Any) -> Any:
        return await self.{{ deferred_attribute }}.get().{{ name }}(*args, **kwargs)
    """,
).strip()

PROPERTY_TEMPLATE = dedent(
    """
    @property
    def {{ name }}(self) -> Any:
        return self.{{ deferred_attribute }}.get().{{ name }}
    {% if has_setter %}

    @{{ name }}.setter
    def {{ name }}(self, value: Any) -> None:
        self.{{ deferred_attribute }}.get().{{ name }} = value
    {% endif %}
    {% if has_deleter %}

    @{{ name }}.deleter
    def {{ name }}(self) -> None:
        del self.{{ deferred_attribute }}.get().{{ name }}
    {% endif %}
    """,
).strip()
