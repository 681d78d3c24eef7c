import copy
from typing import Any, Dict, Set

from ...exceptions import ToolValidationError
from ...logger import get_logger

logger = get_logger(__name__)


class SchemaValidator:
    """
    Helper class for validating and sanitizing the JSON schemas of catalog tools.
    """

    @staticmethod
    def validate_parameters(tool_name: str, schema: Dict[str, Any]) -> None:
        """
        Checks that a parameter schema can be advertised to a conversation runtime.

        The schema must be an object schema, ``properties`` must be a mapping,
        every ``required`` name must be declared in ``properties``, and no
        ``$ref`` may be recursive.

        Args:
            tool_name: Name of the tool, for error reporting.
            schema: The JSON schema to check.

        Raises:
            ToolValidationError: If the schema is not usable.
        """
        if not isinstance(schema, dict):
            msg = f"Parameters of tool '{tool_name}' must be a JSON schema object, got {type(schema).__name__}."
            logger.error(msg)
            raise ToolValidationError(msg)

        if schema.get("type", "object") != "object":
            msg = f"Parameters of tool '{tool_name}' must have type 'object', got '{schema.get('type')}'."
            logger.error(msg)
            raise ToolValidationError(msg)

        properties = schema.get("properties", {})
        if not isinstance(properties, dict):
            msg = f"'properties' of tool '{tool_name}' must be a mapping."
            logger.error(msg)
            raise ToolValidationError(msg)

        missing = [name for name in schema.get("required", []) if name not in properties]
        if missing:
            msg = f"Tool '{tool_name}' requires undeclared parameter(s): {', '.join(missing)}."
            logger.error(msg)
            raise ToolValidationError(msg)

        SchemaValidator.assert_no_recursive_refs(schema)

    @staticmethod
    def assert_no_recursive_refs(schema: Dict[str, Any]) -> None:
        """
        Checks if the schema contains recursive references by traversing the graph.

        Args:
            schema: The JSON schema to check.

        Raises:
            ToolValidationError: If a recursive reference is found.
        """
        defs = schema.get("$defs", {}) or schema.get("definitions", {})

        def check(node: Any, path: Set[str]) -> None:
            if isinstance(node, dict):
                if "$ref" in node:
                    ref = node["$ref"]
                    if ref in path:
                        msg = f"Recursive structure detected: {ref}. Tool inputs must not be recursive."
                        logger.error(msg)
                        raise ToolValidationError(msg)

                    # e.g. #/$defs/Repository
                    if ref.startswith("#"):
                        parts = ref.split("/")
                        if len(parts) >= 3 and parts[-1] in defs:
                            check(defs[parts[-1]], path | {ref})
                    return

                for v in node.values():
                    check(v, path)
            elif isinstance(node, list):
                for item in node:
                    check(item, path)

        check(schema, set())

    @staticmethod
    def sanitize_schema(schema: Any) -> Any:
        """
        Returns a copy of the schema cleaned up for function-tool advertisement.

        Removes ``$schema``, ``$id`` and ``title``, collapses ``anyOf`` pairs that
        only add ``null``, and fills in an empty ``properties`` mapping for object
        schemas that declare none. The input is never mutated.

        Args:
            schema: The JSON schema to sanitize.

        Returns:
            The sanitized schema.
        """
        if not isinstance(schema, dict):
            return copy.deepcopy(schema)

        new_schema = {k: v for k, v in schema.items() if k not in ("$schema", "$id", "title")}

        if "anyOf" in new_schema:
            non_null = [x for x in new_schema["anyOf"] if not (isinstance(x, dict) and x.get("type") == "null")]
            if len(non_null) == 1 and isinstance(non_null[0], dict):
                merged = dict(non_null[0])
                if "description" in new_schema:
                    merged["description"] = new_schema["description"]
                return SchemaValidator.sanitize_schema(merged)

        if new_schema.get("type") == "object" and "properties" not in new_schema:
            new_schema["properties"] = {}

        for key, value in new_schema.items():
            # Keys of these mappings are parameter names, not schema keywords
            if key in ("properties", "$defs", "definitions") and isinstance(value, dict):
                new_schema[key] = {name: SchemaValidator.sanitize_schema(sub) for name, sub in value.items()}
            elif isinstance(value, dict):
                new_schema[key] = SchemaValidator.sanitize_schema(value)
            elif isinstance(value, list):
                new_schema[key] = [SchemaValidator.sanitize_schema(item) for item in value]

        return new_schema
