"""
near_client.contract
====================

Contract proxies generated from JSON-Schema method descriptions.

Each schema lists one method per ``anyOf`` branch::

    {
      "$schema": "http://json-schema.org/draft-07/schema#",
      "title": "ViewMethods",
      "anyOf": [{
        "type": "object",
        "required": ["token_stake"],
        "properties": {
          "token_stake": {
            "type": "object",
            "required": ["address"],
            "properties": {"address": {"type": "string"}}
          }
        },
        "additionalProperties": false
      }]
    }

Positional parameters are mapped onto the method's properties in declaration
order and validated with `jsonschema` before anything goes on the wire::

    poll = ContractInterface(account, "poll.testnet",
                             change_methods=CHANGE, view_methods=VIEW)
    stake = await poll.view.token_stake("alice.testnet")
    await poll.change.create_poll(ChangeCallOptions(amount=1), "my poll")
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import jsonschema

from .account import Account, FunctionCallOptions
from .errors import ArgumentError
from .tx.actions import DEFAULT_FUNCTION_CALL_GAS

__all__ = ["ChangeCallOptions", "MethodSpec", "ContractInterface", "parse_method_schema"]


@dataclass(frozen=True)
class ChangeCallOptions:
    gas: Optional[int] = None
    amount: Optional[int] = None
    meta: Optional[str] = None
    callback_url: Optional[str] = None


@dataclass(frozen=True)
class MethodSpec:
    name: str
    required: Tuple[str, ...]
    properties: Mapping[str, Any]
    schema: Mapping[str, Any]

    def build_args(self, params: Sequence[Any]) -> Dict[str, Any]:
        names = list(self.properties)
        if len(params) > len(names):
            raise ArgumentError(
                f"{self.name} takes at most {len(names)} parameter(s) ({', '.join(names)}), got {len(params)}"
            )
        return dict(zip(names, params))

    def validate(self, args: Mapping[str, Any]) -> None:
        try:
            jsonschema.Draft7Validator(self.schema).validate(args)
        except jsonschema.ValidationError as e:
            where = ".".join(str(p) for p in e.absolute_path) or "<args>"
            raise ArgumentError(f"Invalid parameters for {self.name} at {where}: {e.message}") from e


def parse_method_schema(schema: Optional[Mapping[str, Any]]) -> Dict[str, MethodSpec]:
    """Collect method specs from an ``anyOf`` schema document."""
    if not schema:
        return {}
    jsonschema.Draft7Validator.check_schema(schema)
    definitions = schema.get("definitions") or {}
    methods: Dict[str, MethodSpec] = {}
    for branch in schema.get("anyOf") or []:
        for name in branch.get("required") or []:
            body = (branch.get("properties") or {}).get(name) or {}
            sub = dict(body)
            if definitions:
                sub.setdefault("definitions", definitions)
            methods[name] = MethodSpec(
                name=name,
                required=tuple(body.get("required") or ()),
                properties=dict(body.get("properties") or {}),
                schema=sub,
            )
    return methods


class _MethodNamespace:
    def __init__(self, kind: str, methods: Dict[str, MethodSpec], build: Callable[[MethodSpec], Callable[..., Awaitable[Any]]]):
        self._kind = kind
        self._methods = methods
        self._build = build

    def __getattr__(self, name: str) -> Callable[..., Awaitable[Any]]:
        spec = self.__dict__.get("_methods", {}).get(name)
        if spec is None:
            raise AttributeError(f"no {self._kind} method {name!r}")
        return self._build(spec)

    def __dir__(self) -> List[str]:
        return sorted(self._methods)

    def __contains__(self, name: object) -> bool:
        return name in self._methods


class ContractInterface:
    def __init__(
        self,
        account: Account,
        contract_id: str,
        *,
        change_methods: Optional[Mapping[str, Any]] = None,
        view_methods: Optional[Mapping[str, Any]] = None,
    ) -> None:
        self.account = account
        self.contract_id = contract_id
        self.view = _MethodNamespace("view", parse_method_schema(view_methods), self._view_method)
        self.change = _MethodNamespace("change", parse_method_schema(change_methods), self._change_method)

    def _view_method(self, spec: MethodSpec) -> Callable[..., Awaitable[Any]]:
        async def call(*params: Any) -> Any:
            args = spec.build_args(params)
            spec.validate(args)
            return await self.account.view_function(self.contract_id, spec.name, args)

        call.__name__ = spec.name
        return call

    def _change_method(self, spec: MethodSpec) -> Callable[..., Awaitable[Any]]:
        async def call(options: Optional[ChangeCallOptions] = None, *params: Any) -> Any:
            options = options or ChangeCallOptions()
            args = spec.build_args(params)
            spec.validate(args)
            return await self.account.function_call(
                FunctionCallOptions(
                    contract_id=self.contract_id,
                    method_name=spec.name,
                    args=args,
                    gas=options.gas if options.gas is not None else DEFAULT_FUNCTION_CALL_GAS,
                    attached_deposit=options.amount or 0,
                    wallet_meta=options.meta,
                    wallet_callback_url=options.callback_url,
                )
            )

        call.__name__ = spec.name
        return call
