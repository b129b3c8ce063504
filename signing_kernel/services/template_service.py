"""
TemplateService -- reusable contract bodies with ``[VARIABLE]`` placeholders.

Responsibility:
    Stores templates and renders them into draft content.  Templates are
    never deleted; retiring one flips ``is_active`` so contracts that were
    drafted from it keep a valid reference.

Architecture position:
    Kernel > Services.  Called by ContractLifecycleService.create_draft.

Failure modes:
    - TemplateNotFoundError for unknown ids.
    - ValueError for a duplicate template name or a body without text.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from signing_kernel.domain.clock import Clock, SystemClock
from signing_kernel.domain.dtos import TemplateInfo
from signing_kernel.domain.templates import extract_variables, render_template
from signing_kernel.exceptions import TemplateNotFoundError
from signing_kernel.logging_config import get_logger
from signing_kernel.models.contract import ContractTemplate
from signing_kernel.services.base import BaseService

logger = get_logger("services.template")


class TemplateService(BaseService[ContractTemplate]):
    """Create, look up and retire contract templates."""

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _to_dto(self, template: ContractTemplate) -> TemplateInfo:
        return TemplateInfo(
            id=template.id,
            name=template.name,
            body=template.body,
            variables=tuple(template.variables or ()),
            is_active=template.is_active,
            created_at=template.created_at,
            description=template.description,
        )

    def _get(self, template_id: UUID) -> ContractTemplate:
        template = self.session.get(ContractTemplate, template_id)
        if template is None:
            raise TemplateNotFoundError(str(template_id))
        return template

    def create_template(
        self,
        name: str,
        body: str,
        actor_id: UUID,
        description: str | None = None,
    ) -> TemplateInfo:
        """
        Store a new template.  Declared variables are read from the body.

        Raises:
            ValueError: If the name is taken or the body is blank.
        """
        if not body or not body.strip():
            raise ValueError("template body must not be blank")

        existing = self.session.execute(
            select(ContractTemplate.id).where(ContractTemplate.name == name)
        ).scalar_one_or_none()
        if existing is not None:
            raise ValueError(f"template name already in use: {name}")

        template = ContractTemplate(
            name=name,
            description=description,
            body=body,
            variables=list(extract_variables(body)),
            is_active=True,
            created_at=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(template)
        self.session.flush()

        logger.info(
            "template_created",
            extra={
                "template_id": str(template.id),
                "template_name": name,
                "variable_count": len(template.variables),
            },
        )
        return self._to_dto(template)

    def get_template(self, template_id: UUID) -> TemplateInfo:
        return self._to_dto(self._get(template_id))

    def list_active_templates(self) -> list[TemplateInfo]:
        templates = self.session.execute(
            select(ContractTemplate)
            .where(ContractTemplate.is_active.is_(True))
            .order_by(ContractTemplate.name)
        ).scalars().all()
        return [self._to_dto(t) for t in templates]

    def deactivate_template(self, template_id: UUID, actor_id: UUID) -> TemplateInfo:
        template = self._get(template_id)
        if template.is_active:
            template.is_active = False
            self.session.flush()
            logger.info(
                "template_deactivated",
                extra={"template_id": str(template_id), "actor_id": str(actor_id)},
            )
        return self._to_dto(template)

    def render(self, template_id: UUID, values: dict[str, str]) -> str:
        """Render an active template.  Unknown placeholders stay in place."""
        template = self._get(template_id)
        if not template.is_active:
            raise ValueError(f"template {template.name} is inactive")
        return render_template(template.body, values)
