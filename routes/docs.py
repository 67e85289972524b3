"""OpenAPI description of the JSON API, generated from the registered routes."""
import re

from flask import Blueprint, current_app, jsonify

docs_bp = Blueprint("docs", __name__)

_PATH_PARAM = re.compile(r"<(?:(?P<converter>[a-z]+):)?(?P<name>\w+)>")
_PARAM_TYPES = {"int": "integer", "float": "number"}
_IGNORED_METHODS = {"HEAD", "OPTIONS"}


def _openapi_path(rule: str) -> tuple[str, list[dict]]:
    parameters = []
    for match in _PATH_PARAM.finditer(rule):
        parameters.append(
            {
                "name": match.group("name"),
                "in": "path",
                "required": True,
                "schema": {"type": _PARAM_TYPES.get(match.group("converter"), "string")},
            }
        )
    return _PATH_PARAM.sub(lambda m: "{" + m.group("name") + "}", rule), parameters


def _summary(view) -> str:
    doc = (getattr(view, "__doc__", None) or "").strip()
    return doc.splitlines()[0] if doc else view.__name__.replace("_", " ")


def build_openapi(app) -> dict:
    paths: dict[str, dict] = {}
    for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
        if not rule.rule.startswith("/api/"):
            continue
        path, parameters = _openapi_path(rule.rule)
        view = app.view_functions[rule.endpoint]
        blueprint = rule.endpoint.split(".", 1)[0]
        for method in sorted(rule.methods - _IGNORED_METHODS):
            operation = {
                "operationId": f"{rule.endpoint}.{method.lower()}",
                "summary": _summary(view),
                "tags": [blueprint],
                "responses": {"default": {"description": "JSON"}},
            }
            if parameters:
                operation["parameters"] = parameters
            paths.setdefault(path, {})[method.lower()] = operation

    return {
        "openapi": "3.0.0",
        "info": {
            "title": "Documentação TerraUrb",
            "version": "1.0.0",
            "description": "API da plataforma TerraUrb: denúncias, comentários, tags, moderação e administração.",
        },
        "components": {
            "securitySchemes": {"bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "JWT"}}
        },
        "security": [{"bearerAuth": []}],
        "paths": paths,
    }


@docs_bp.route("/openapi.json", methods=["GET"])
def openapi_document():
    return jsonify(build_openapi(current_app))
