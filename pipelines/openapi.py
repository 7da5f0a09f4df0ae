"""OpenAPI specification importer.

Walks an OpenAPI 3.x document and renders one Markdown page per logical
unit: an overview page from ``info``, one page per operation and one page per
schema under ``components.schemas``. Page URLs are ``<source>#<fragment>``
with fragments derived from the method and path or the schema name, so
re-importing the same spec yields the same URLs.
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
import yaml

from .errors import SourceFetchError, SpecParseError
from .models import Page, PageMetadata

logger = logging.getLogger(__name__)

HTTP_METHODS = ('get', 'post', 'put', 'patch', 'delete', 'options', 'head')
SCHEMA_COMBINATORS = ('allOf', 'oneOf', 'anyOf')


async def read_spec_source(source: str, timeout: float = 60.0) -> str:
    """Read raw spec text from a file path or an http(s) URL."""
    if source.startswith(('http://', 'https://')):
        try:
            async with aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=timeout)) as session:
                async with session.get(source, allow_redirects=True) as response:
                    if response.status >= 400:
                        raise SourceFetchError(source, f"Failed to fetch OpenAPI spec: {response.status}")
                    return await response.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            raise SourceFetchError(source, str(e) or type(e).__name__) from e

    try:
        return Path(source).read_text(encoding='utf-8')
    except (OSError, UnicodeDecodeError) as e:
        raise SourceFetchError(source, str(e)) from e


def parse_spec(text: str) -> Dict[str, Any]:
    """Parse spec text as JSON, falling back to YAML.

    Raises:
        SpecParseError: If the text is neither, or its top-level sections
            are not mappings
    """
    try:
        spec = json.loads(text)
    except json.JSONDecodeError as json_error:
        try:
            spec = yaml.safe_load(text)
            logger.info("Successfully parsed YAML spec")
        except yaml.YAMLError as yaml_error:
            logger.error(f"Failed to parse spec as JSON ({json_error}) or YAML ({yaml_error})")
            raise SpecParseError("OpenAPI spec must be valid JSON or YAML") from yaml_error

    if not isinstance(spec, dict):
        raise SpecParseError("OpenAPI spec must be a JSON or YAML object")

    for section in ('info', 'paths', 'components'):
        if spec.get(section) is not None and not isinstance(spec[section], dict):
            raise SpecParseError(f"OpenAPI '{section}' must be an object, got {type(spec[section]).__name__}")

    schemas = (spec.get('components') or {}).get('schemas')
    if schemas is not None and not isinstance(schemas, dict):
        raise SpecParseError(f"OpenAPI 'components.schemas' must be an object, got {type(schemas).__name__}")

    return spec


async def load_openapi_spec(source: str, timeout: float = 60.0) -> Dict[str, Any]:
    """Read and parse a spec from a file path or URL."""
    logger.info(f"Processing OpenAPI spec from: {source}")
    spec = parse_spec(await read_spec_source(source, timeout=timeout))
    info = spec.get('info') or {}
    logger.info(f"Parsed OpenAPI spec: {info.get('title', 'Unknown')} v{info.get('version', 'Unknown')}")
    return spec


def resolve_ref(spec: Dict[str, Any], ref: str) -> Optional[Dict[str, Any]]:
    """Resolve a local ``#/...`` JSON pointer against the spec."""
    if not isinstance(ref, str) or not ref.startswith('#/'):
        return None

    node: Any = spec
    for token in ref[2:].split('/'):
        token = token.replace('~1', '/').replace('~0', '~')
        if not isinstance(node, dict) or token not in node:
            return None
        node = node[token]

    return node if isinstance(node, dict) else None


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _dicts(value: Any) -> List[Dict[str, Any]]:
    """Mapping entries of a spec list; other entries are ignored."""
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


def _is_enum(value: Any) -> bool:
    return isinstance(value, list) and bool(value)


def _enum_text(values: List[Any]) -> str:
    return ', '.join(str(v) for v in values)


def _type_label(schema: Dict[str, Any]) -> str:
    if schema.get('type'):
        return str(schema['type'])
    if schema.get('$ref'):
        return str(schema['$ref']).rsplit('/', 1)[-1]
    return 'any'


def format_schema(schema: Dict[str, Any], spec: Dict[str, Any], _ref_path: Tuple[str, ...] = ()) -> str:
    """Render a schema (following ``$ref`` links) as Markdown.

    A reference that is already being rendered higher up is printed rather
    than followed, so self-referencing schemas terminate.
    """
    ref = schema.get('$ref')
    if ref:
        if ref in _ref_path:
            return f"Circular reference: `{ref}`\n"
        target = resolve_ref(spec, ref)
        if target is None:
            return f"Unresolved reference: `{ref}`\n"
        return format_schema(target, spec, _ref_path + (ref,))

    output = ''

    if schema.get('type'):
        output += f"Type: `{schema['type']}`\n"

    properties = _mapping(schema.get('properties'))
    if properties:
        output += '\nProperties:\n'
        for prop_name, prop_schema in properties.items():
            prop_schema = _mapping(prop_schema)
            output += f"- `{prop_name}` ({_type_label(prop_schema)}): {prop_schema.get('description', '')}\n"

    if isinstance(schema.get('items'), dict):
        output += '\nArray items:\n'
        output += format_schema(schema['items'], spec, _ref_path)

    for combinator in SCHEMA_COMBINATORS:
        for sub_schema in _dicts(schema.get(combinator)):
            output += f"\n{combinator}:\n"
            output += format_schema(sub_schema, spec, _ref_path)

    return output


def _join_blocks(blocks: List[str]) -> str:
    texts = (str(block).strip('\n') for block in blocks if block)
    return '\n\n'.join(text for text in texts if text.strip())


def create_info_page(info: Dict[str, Any], source: str) -> Page:
    """Create the overview page from the spec's ``info`` object."""
    blocks = [
        f"# {info.get('title') or 'API Documentation'}",
        f"**Version:** {info.get('version') or 'Unknown'}",
        info.get('description') or '',
    ]
    if info.get('termsOfService'):
        blocks.append(f"**Terms of Service:** {info['termsOfService']}")

    headings = ['Overview']
    contact = _mapping(info.get('contact'))
    if contact:
        lines = ['## Contact']
        for key, label in (('name', 'Name'), ('email', 'Email'), ('url', 'URL')):
            if contact.get(key):
                lines.append(f"- {label}: {contact[key]}")
        blocks.append('\n'.join(lines))
        headings.append('Contact')

    license_info = _mapping(info.get('license'))
    if license_info:
        lines = ['## License']
        for key in ('name', 'url'):
            if license_info.get(key):
                lines.append(f"- {license_info[key]}")
        blocks.append('\n'.join(lines))
        headings.append('License')

    return Page(
        url=f"{source}#info",
        title=f"{info.get('title') or 'API'} - Overview",
        content=_join_blocks(blocks),
        links=[],
        metadata=PageMetadata(
            description=str(info.get('description') or ''),
            headings=headings,
            extra={'source': 'openapi'},
        ),
        origin="openapi"
    )


def _render_parameters(parameters: List[Dict[str, Any]], spec: Dict[str, Any]) -> str:
    lines = ['## Parameters', '']
    for param in parameters:
        if '$ref' in param:
            param = resolve_ref(spec, str(param['$ref'])) or {'name': param['$ref'], 'in': 'unknown'}

        required = ' (required)' if param.get('required') else ' (optional)'
        lines.append(f"- **{param.get('name')}**{required} ({param.get('in')}): "
                     f"{param.get('description') or 'No description'}")

        param_schema = _mapping(param.get('schema'))
        if param_schema:
            lines.append(f"  - Type: `{_type_label(param_schema)}`")
            if _is_enum(param_schema.get('enum')):
                lines.append(f"  - Allowed values: {_enum_text(param_schema['enum'])}")
    return '\n'.join(lines)


def _render_media(content: Dict[str, Any], spec: Dict[str, Any]) -> str:
    output = ''
    for media_type, media_obj in _mapping(content).items():
        output += f"\n\n**Content-Type:** `{media_type}`\n"
        if isinstance(media_obj, dict) and isinstance(media_obj.get('schema'), dict):
            output += format_schema(media_obj['schema'], spec)
    return output


def create_operation_page(path: str, method: str, operation: Dict[str, Any],
                          spec: Dict[str, Any], source: str,
                          path_parameters: Optional[List[Dict[str, Any]]] = None) -> Page:
    """Create the page for one ``(path, method)`` operation."""
    title = str(operation.get('summary') or f"{method.upper()} {path}")

    blocks = [
        f"# {title}",
        f"**Endpoint:** `{method.upper()} {path}`",
        operation.get('description') or '',
    ]
    if operation.get('deprecated'):
        blocks.append('**⚠️ This endpoint is deprecated.**')
    tags = operation.get('tags')
    if isinstance(tags, list) and tags:
        blocks.append(f"**Tags:** {', '.join(str(tag) for tag in tags)}")

    headings = []
    parameters = _dicts(path_parameters) + _dicts(operation.get('parameters'))
    if parameters:
        blocks.append(_render_parameters(parameters, spec))
        headings.append('Parameters')

    request_body = operation.get('requestBody')
    if isinstance(request_body, dict) and '$ref' in request_body:
        request_body = resolve_ref(spec, request_body['$ref'])
    if isinstance(request_body, dict) and request_body:
        body = f"## Request Body\n\n{request_body.get('description') or ''}"
        body += _render_media(request_body.get('content') or {}, spec)
        blocks.append(body)
        headings.append('Request Body')

    responses = _mapping(operation.get('responses'))
    if responses:
        parts = ['## Responses']
        for status_code, response in responses.items():
            if isinstance(response, dict) and '$ref' in response:
                response = resolve_ref(spec, str(response['$ref'])) or {}
            response = _mapping(response)
            text = f"### {status_code}\n\n{response.get('description') or 'No description'}"
            text += _render_media(response.get('content') or {}, spec)
            parts.append(text)
        blocks.append('\n\n'.join(parts))
        headings.append('Responses')

    return Page(
        url=f"{source}#{method}-{path.replace('/', '-')}",
        title=title,
        content=_join_blocks(blocks),
        links=[],
        metadata=PageMetadata(
            description=str(operation.get('description') or operation.get('summary') or ''),
            headings=headings,
            extra={
                'source': 'openapi',
                'httpMethod': method.upper(),
                'apiPath': path,
                'operationId': operation.get('operationId'),
            },
        ),
        origin="openapi"
    )


def create_schema_page(schema_name: str, schema: Dict[str, Any], source: str) -> Page:
    """Create the page for a named schema definition."""
    blocks = [f"# Schema: {schema_name}", schema.get('description') or '']
    if schema.get('type'):
        blocks.append(f"**Type:** `{schema['type']}`")

    headings = []
    properties = _mapping(schema.get('properties'))
    if properties:
        required = schema.get('required')
        required_fields = {str(name) for name in required} if isinstance(required, list) else set()
        lines = ['## Properties', '']
        for prop_name, prop_schema in properties.items():
            prop_schema = _mapping(prop_schema)
            required = ' (required)' if prop_name in required_fields else ' (optional)'
            lines.append(f"- **{prop_name}**{required}: {prop_schema.get('description') or 'No description'}")
            lines.append(f"  - Type: `{_type_label(prop_schema)}`")
            if _is_enum(prop_schema.get('enum')):
                lines.append(f"  - Allowed values: {_enum_text(prop_schema['enum'])}")
            if prop_schema.get('format'):
                lines.append(f"  - Format: `{prop_schema['format']}`")
        blocks.append('\n'.join(lines))
        headings.append('Properties')

    if _is_enum(schema.get('enum')):
        blocks.append(f"## Allowed Values\n\n{_enum_text(schema['enum'])}")
        headings.append('Allowed Values')

    return Page(
        url=f"{source}#schema-{schema_name}",
        title=f"Schema: {schema_name}",
        content=_join_blocks(blocks),
        links=[],
        metadata=PageMetadata(
            description=str(schema.get('description') or ''),
            headings=headings,
            extra={'source': 'openapi', 'schemaName': schema_name},
        ),
        origin="openapi"
    )


def process_openapi_spec(spec: Dict[str, Any], source: str) -> List[Page]:
    """Render a parsed spec into documentation pages.

    Args:
        spec: Parsed OpenAPI document
        source: Path or URL the spec came from; used as the base of page URLs

    Returns:
        Overview page first, then operations in document order, then schemas
    """
    pages = []

    if spec.get('info'):
        pages.append(create_info_page(spec['info'], source))

    for path, path_item in (spec.get('paths') or {}).items():
        if not isinstance(path_item, dict):
            continue
        path = str(path)
        path_parameters = _dicts(path_item.get('parameters'))
        for method, operation in path_item.items():
            # Skip non-operation keys like $ref, servers, parameters
            if method not in HTTP_METHODS or not isinstance(operation, dict):
                continue
            pages.append(create_operation_page(path, method, operation, spec, source, path_parameters))

    schemas = (spec.get('components') or {}).get('schemas') or {}
    for schema_name, schema in schemas.items():
        if isinstance(schema, dict):
            pages.append(create_schema_page(schema_name, schema, source))

    logger.info(f"Created {len(pages)} documentation pages from OpenAPI spec")
    return pages


async def import_openapi_source(source: str, timeout: float = 60.0) -> List[Page]:
    """Load a spec from a file path or URL and render it into pages."""
    spec = await load_openapi_spec(source, timeout=timeout)
    return process_openapi_spec(spec, source)
