"""Classification of CNI configuration embedded in a NAD.

A NAD's ``spec.config`` is either a single plugin configuration::

    {"cniVersion": "0.3.1", "name": "net", "type": "macvlan", ...}

or a configuration list chaining several plugins::

    {"cniVersion": "0.3.1", "name": "net", "plugins": [{"type": "bridge"}, ...]}

The structural checks follow what CNI tooling accepts when it loads either
form; plugin ``type`` extraction runs only after the shape is known good.
"""

from __future__ import annotations

import copy
import json
from typing import Any, Dict, Mapping, Set

from .errors import InvalidCNIConfigShapeError, MissingPluginTypeError, NotJSONError


def load_config(config_json: str) -> Dict[str, Any]:
    """Decode ``config_json`` into a JSON object or raise ``NotJSONError``."""

    try:
        conf = json.loads(config_json)
    except (TypeError, ValueError) as exc:
        raise NotJSONError("configuration string is not in JSON format") from exc
    if not isinstance(conf, dict):
        raise NotJSONError("configuration string is not a JSON object")
    return conf


def preprocess_config(conf: Mapping[str, Any], name: str) -> Dict[str, Any]:
    """Return a copy of ``conf`` with ``name`` filled in when it is missing.

    Multus does the same before handing the config to CNI, so a NAD without
    an explicit network name is still usable.  Nothing else is touched.
    """

    processed = copy.deepcopy(dict(conf))
    if name and not processed.get("name"):
        processed["name"] = name
    return processed


def is_config_list(conf: Mapping[str, Any]) -> bool:
    return isinstance(conf.get("plugins"), list)


def check_config_shape(conf: Mapping[str, Any]) -> None:
    """Raise ``InvalidCNIConfigShapeError`` unless ``conf`` loads as CNI config."""

    if is_config_list(conf):
        _check_config_list(conf)
    else:
        _check_plugin_fields(conf, "config")


def plugin_types(conf: Mapping[str, Any]) -> Set[str]:
    """Collect the plugin ``type`` names referenced by ``conf``."""

    if is_config_list(conf):
        types = set()
        for index, plugin in enumerate(conf["plugins"]):
            if not isinstance(plugin, Mapping) or not plugin.get("type"):
                raise MissingPluginTypeError(f"missing 'type' in plugins[{index}]")
            types.add(plugin["type"])
        return types

    if not conf.get("type"):
        raise MissingPluginTypeError("missing 'type' in cni config")
    return {conf["type"]}


def classify(config_json: str, name: str = "") -> Set[str]:
    """Return the set of plugin types used by ``config_json``.

    An empty string is a valid config with no plugins.  ``name`` is injected
    as the network name when the config does not carry one.
    """

    if not config_json:
        return set()

    conf = preprocess_config(load_config(config_json), name)
    check_config_shape(conf)
    return plugin_types(conf)


def _check_config_list(conf: Mapping[str, Any]) -> None:
    _check_string(conf, "name", "config list")
    if not conf.get("name"):
        raise InvalidCNIConfigShapeError("config list is missing 'name'")
    _check_string(conf, "cniVersion", "config list")
    disable_check = conf.get("disableCheck")
    if disable_check is not None and not isinstance(disable_check, (bool, str)):
        raise InvalidCNIConfigShapeError("config list 'disableCheck' must be a boolean")

    plugins = conf["plugins"]
    if not plugins:
        raise InvalidCNIConfigShapeError("config list has no plugins")
    for index, plugin in enumerate(plugins):
        where = f"plugins[{index}]"
        if not isinstance(plugin, Mapping):
            raise InvalidCNIConfigShapeError(f"{where} is not a JSON object")
        _check_plugin_fields(plugin, where)


def _check_plugin_fields(plugin: Mapping[str, Any], where: str) -> None:
    for key in ("name", "type", "cniVersion"):
        _check_string(plugin, key, where)

    capabilities = plugin.get("capabilities")
    if capabilities is not None:
        if not isinstance(capabilities, Mapping) or not all(
            isinstance(value, bool) for value in capabilities.values()
        ):
            raise InvalidCNIConfigShapeError(
                f"{where} 'capabilities' must map names to booleans"
            )

    ipam = plugin.get("ipam")
    if ipam is not None:
        if not isinstance(ipam, Mapping):
            raise InvalidCNIConfigShapeError(f"{where} 'ipam' must be a JSON object")
        _check_string(ipam, "type", f"{where} ipam")

    dns = plugin.get("dns")
    if dns is not None and not isinstance(dns, Mapping):
        raise InvalidCNIConfigShapeError(f"{where} 'dns' must be a JSON object")


def _check_string(obj: Mapping[str, Any], key: str, where: str) -> None:
    value = obj.get(key)
    if value is not None and not isinstance(value, str):
        raise InvalidCNIConfigShapeError(f"{where} '{key}' must be a string")
