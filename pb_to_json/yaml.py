from typing import Dict, Any

import yaml


def dump_yaml(document: Dict[str, Any], sort_keys: bool = False) -> str:
    return yaml.safe_dump(document, sort_keys=sort_keys, allow_unicode=True, default_flow_style=False)
