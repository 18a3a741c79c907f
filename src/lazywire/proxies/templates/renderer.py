from __future__ import annotations

import logging
from importlib.metadata import PackageNotFoundError, version
from textwrap import indent

from jinja2 import Environment, StrictUndefined, Template

from lazywire.proxies.templates.planner import (
    DEFERRED_ATTRIBUTE,
    MethodPlan,
    PropertyPlan,
    ProxyGenerationPlan,
)
from lazywire.proxies.templates.templates import (
    ASYNC_METHOD_TEMPLATE,
    CLASS_TEMPLATE,
    HASH_METHOD_TEMPLATE,
    INIT_METHOD_TEMPLATE,
    MODULE_TEMPLATE,
    PROPERTY_TEMPLATE,
    REPR_METHOD_TEMPLATE,
    SYNC_METHOD_TEMPLATE,
)

_INDENT = " " * 4
_GENERATOR_SOURCE = "lazywire.proxies.templates.renderer.ProxyTemplateRenderer.get_proxy_code"

logger = logging.getLogger(__name__)


class ProxyTemplateRenderer:
    """Renderer for generated lazy proxy classes.

    The rendered module defines one class that subclasses the contract and
    forwards every planned member through the deferred value stored in
    ``_lazywire_deferred``. It expects ``_contract`` (the contract class) and
    ``_contract_parameters`` (its TypeVars) to be provided by the namespace it
    is executed in.
    """

    def __init__(self) -> None:
        self._env = Environment(
            autoescape=False,
            trim_blocks=True,
            lstrip_blocks=True,
            undefined=StrictUndefined,
        )
        self._module_template = self._template(MODULE_TEMPLATE)
        self._class_template = self._template(CLASS_TEMPLATE)
        self._init_method_template = self._template(INIT_METHOD_TEMPLATE)
        self._repr_method_template = self._template(REPR_METHOD_TEMPLATE)
        self._hash_method_template = self._template(HASH_METHOD_TEMPLATE)
        self._sync_method_template = self._template(SYNC_METHOD_TEMPLATE)
        self._async_method_template = self._template(ASYNC_METHOD_TEMPLATE)
        self._property_template = self._template(PROPERTY_TEMPLATE)

    def get_proxy_code(self, plan: ProxyGenerationPlan) -> str:
        """Render the proxy module source for ``plan``."""
        self._log_plan_strategy(plan=plan)
        return self._module_template.render(
            module_docstring_block=self._render_module_docstring(plan=plan),
            class_block=self._render_class(plan=plan),
        )

    def _render_class(self, *, plan: ProxyGenerationPlan) -> str:
        base_expression = "_contract[_contract_parameters]" if plan.is_generic else "_contract"
        member_blocks = [
            *(self._indent_block(self._render_property(prop)) for prop in plan.properties),
            *(self._indent_block(self._render_method(method)) for method in plan.methods),
        ]
        if plan.forwards_hash:
            member_blocks.append(
                self._indent_block(
                    self._hash_method_template.render(deferred_attribute=DEFERRED_ATTRIBUTE),
                ),
            )
        repr_method_block = ""
        if not plan.declares_repr:
            repr_method_block = self._indent_block(
                self._repr_method_template.render(deferred_attribute=DEFERRED_ATTRIBUTE),
            )

        return self._class_template.render(
            class_name=plan.class_name,
            base_expression=base_expression,
            class_docstring_block=self._docstring_block(
                lines=[f"Forward ``{plan.contract_name}`` members to a lazily built instance."],
                depth=1,
            ),
            deferred_attribute=DEFERRED_ATTRIBUTE,
            init_method_block=self._indent_block(
                self._init_method_template.render(deferred_attribute=DEFERRED_ATTRIBUTE),
            ),
            repr_method_block=repr_method_block,
            member_blocks=member_blocks,
        ).strip()

    def _render_method(self, method: MethodPlan) -> str:
        template = self._async_method_template if method.is_async else self._sync_method_template
        return template.render(name=method.name, deferred_attribute=DEFERRED_ATTRIBUTE).strip()

    def _render_property(self, prop: PropertyPlan) -> str:
        return self._property_template.render(
            name=prop.name,
            has_setter=prop.has_setter,
            has_deleter=prop.has_deleter,
            deferred_attribute=DEFERRED_ATTRIBUTE,
        ).strip()

    def _render_module_docstring(self, *, plan: ProxyGenerationPlan) -> str:
        parameters = ", ".join(parameter.__name__ for parameter in plan.type_parameters) or "none"
        lines = [
            "Generated lazy proxy module.",
            "",
            f"Generated by: {_GENERATOR_SOURCE}",
            f"lazywire version used for generation: {self._resolve_lazywire_version()}",
            "",
            "Generation configuration:",
            f"- contract: {plan.contract.__module__}.{plan.contract_name}",
            f"- type parameters: {parameters}",
            f"- forwarded methods: {len(plan.methods)}",
            f"- forwarded properties: {len(plan.properties)}",
        ]
        return self._docstring_block(lines=lines, depth=0)

    def _log_plan_strategy(self, *, plan: ProxyGenerationPlan) -> None:
        logger.info(
            (
                "Lazy proxy codegen: contract=%s generic=%s method_count=%d "
                "async_method_count=%d property_count=%d"
            ),
            plan.contract_name,
            plan.is_generic,
            len(plan.methods),
            sum(1 for method in plan.methods if method.is_async),
            len(plan.properties),
        )

    def _resolve_lazywire_version(self) -> str:
        try:
            return version("lazywire")
        except PackageNotFoundError:
            return "unknown"

    def _template(self, text: str) -> Template:
        return self._env.from_string(text)

    def _docstring_block(self, *, lines: list[str], depth: int) -> str:
        prefix = _INDENT * depth
        return "\n".join(f"{prefix}{line}" if line else "" for line in ['"""', *lines, '"""'])

    def _indent_block(self, block: str) -> str:
        return indent(block, _INDENT)
