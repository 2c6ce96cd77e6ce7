"""Generation units: one service at a time, independent services in parallel."""

import logging
from collections.abc import Iterator, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from wiregen.config import Settings
from wiregen.core.converters import ConverterPlan, ConverterSynthesizer
from wiregen.core.domain import DomainSynthesizer, DomainType
from wiregen.core.naming import NameRegistry
from wiregen.core.shapes import BodyShape, CollectionShape, NamedDefinition, RecordShape, Role, ShapeSynthesizer
from wiregen.core.validation import ValidationSynthesizer, ValidatorPlan
from wiregen.errors import GenerationError, SchemaError
from wiregen.models import Design, Service

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Symbol:
    kind: str
    name: str
    role: str = ""
    method: str = ""


@dataclass
class ServiceArtifacts:
    """Everything emitted for one service, in emission order."""

    service: str
    description: str | None
    domain_types: list[DomainType]
    bodies: list[BodyShape]
    definitions: list[NamedDefinition]
    request_constructors: list[ConverterPlan]
    response_constructors: list[ConverterPlan]
    validators: list[ValidatorPlan]
    helpers: list[ConverterPlan]

    def symbols(self) -> Iterator[Symbol]:
        owners = {body.record_name: body.method for body in self.bodies if body.record_name}
        for domain_type in self.domain_types:
            yield Symbol("domain", domain_type.name)
        for definition in self.definitions:
            kind = "collection" if isinstance(definition, CollectionShape) else "body"
            yield Symbol(kind, definition.name, definition.role.value, owners.get(definition.name, ""))
        for plan in [*self.request_constructors, *self.response_constructors]:
            yield Symbol("constructor", plan.name, plan.kind.value, plan.method or "")
        for validator in self.validators:
            yield Symbol("validator", validator.name, Role.REQUEST.value, validator.method or "")
        for helper in self.helpers:
            yield Symbol("helper", helper.name, helper.kind.value)


@dataclass
class GenerationReport:
    artifacts: dict[str, ServiceArtifacts] = field(default_factory=dict)
    failures: dict[str, GenerationError] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failures


def generate_service(design: Design, service: Service) -> ServiceArtifacts:
    """Run one generation unit with a fresh name registry.

    Names are reserved in a fixed order (domain types, top-level bodies, nested shapes,
    validators, converters) so that the output is stable across runs.
    """
    logger.info("generating service %s", service.name)
    registry = NameRegistry()
    domain = DomainSynthesizer(design, registry)
    shapes = ShapeSynthesizer(design, registry, domain)
    current: str | None = None
    try:
        for method in service.methods:
            current = method.name
            domain.collect(method)
        for method in service.methods:
            current = method.name
            shapes.reserve_top_level(method)

        bodies: list[BodyShape] = []
        request_bodies: dict[str, BodyShape | None] = {}
        for method in service.methods:
            current = method.name
            request_bodies[method.name] = shapes.synthesize(method, Role.REQUEST)
            candidates = [request_bodies[method.name], shapes.synthesize(method, Role.RESPONSE)]
            candidates.extend(shapes.synthesize(method, Role.ERROR, error.name) for error in method.errors)
            bodies.extend(body for body in candidates if body is not None)
        current = None

        validators = ValidationSynthesizer(design, registry, shapes).plan(bodies)
        converters = ConverterSynthesizer(design, registry, domain, shapes)
        request_constructors = []
        for method in service.methods:
            current = method.name
            plan = converters.request_constructor(method, request_bodies[method.name])
            if plan is not None:
                request_constructors.append(plan)
        response_constructors = []
        for body in bodies:
            if body.role is not Role.REQUEST:
                current = body.method
                response_constructors.append(converters.response_constructor(body))
        current = None
        helpers = converters.helpers()
    except GenerationError as exc:
        raise exc.with_context(service=service.name, method=current)

    definitions = list(shapes.definitions.values())
    top_level = [d for d in definitions if isinstance(d, RecordShape) and d.top_level]
    records = [d for d in definitions if isinstance(d, RecordShape) and not d.top_level]
    collections = [d for d in definitions if isinstance(d, CollectionShape)]
    artifacts = ServiceArtifacts(
        service=service.name,
        description=service.description,
        domain_types=list(domain.types.values()),
        bodies=bodies,
        definitions=[*top_level, *records, *collections],
        request_constructors=request_constructors,
        response_constructors=response_constructors,
        validators=validators,
        helpers=helpers,
    )
    logger.info(
        "generated service %s: %d body types, %d validators, %d helpers",
        service.name,
        len(artifacts.definitions),
        len(validators),
        len(helpers),
    )
    return artifacts


def generate_design(design: Design, settings: Settings, services: Sequence[str] | None = None) -> GenerationReport:
    """Generate every selected service; a failing service does not stop the others."""
    names = list(services) if services else [service.name for service in design.services]
    selected: list[Service] = []
    for name in names:
        service = design.service(name)
        if service is None:
            raise SchemaError(f"unknown service {name!r}")
        selected.append(service)

    report = GenerationReport()
    with ThreadPoolExecutor(max_workers=settings.workers) as pool:
        futures = [(service.name, pool.submit(generate_service, design, service)) for service in selected]
        for name, future in futures:
            try:
                report.artifacts[name] = future.result()
            except GenerationError as exc:
                logger.error("failed to generate service %s: %s", name, exc)
                report.failures[name] = exc
    return report
