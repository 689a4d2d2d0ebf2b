"""Schema Repository - Form templates, fields and sections"""
from typing import List, Optional, Tuple
from pymongo.collection import Collection
from pymongo import ASCENDING

from .mongo_client import get_collection, translate_errors, strip_id
from ..domain.models import FormTemplate, FieldSchema, FormSection
from ..domain.errors import TemplateNotFoundError
from ..utils.logger import get_logger

logger = get_logger(__name__)


class SchemaRepository:
    """Read access to form template definitions"""

    def __init__(
        self,
        templates: Optional[Collection] = None,
        fields: Optional[Collection] = None,
        sections: Optional[Collection] = None
    ):
        self._templates: Collection = templates if templates is not None else get_collection("form_templates")
        self._fields: Collection = fields if fields is not None else get_collection("form_fields")
        self._sections: Collection = sections if sections is not None else get_collection("form_sections")

    def get_template(self, template_id: str) -> Optional[FormTemplate]:
        with translate_errors("get_template"):
            doc = self._templates.find_one({"id": template_id})
        if doc is None:
            return None
        return FormTemplate.model_validate(strip_id(doc))

    def get_template_or_raise(self, template_id: str) -> FormTemplate:
        template = self.get_template(template_id)
        if template is None:
            raise TemplateNotFoundError(
                f"Template {template_id} not found",
                details={"template_id": template_id}
            )
        return template

    def get_fields(self, template_id: str) -> List[FieldSchema]:
        """Fields of a template ordered by field_order"""
        with translate_errors("get_fields"):
            docs = list(self._fields.find({"template_id": template_id}).sort("field_order", ASCENDING))
        return [FieldSchema.model_validate(strip_id(doc)) for doc in docs]

    def get_sections(self, template_id: str) -> List[FormSection]:
        """Sections of a template ordered by section_order"""
        with translate_errors("get_sections"):
            docs = list(self._sections.find({"template_id": template_id}).sort("section_order", ASCENDING))
        return [FormSection.model_validate(strip_id(doc)) for doc in docs]

    def get_schema(self, template_id: str) -> Tuple[List[FieldSchema], List[FormSection]]:
        fields = self.get_fields(template_id)
        sections = self.get_sections(template_id)
        logger.debug(
            f"Loaded schema with {len(fields)} fields and {len(sections)} sections",
            extra={"template_id": template_id}
        )
        return fields, sections
