"""Structural index: id lookups and containment maps over a form's tree."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from formlogic.structure.model import Element, Form, Group, Page

logger = logging.getLogger(__name__)


class StructureSource(Protocol):
    """Narrow read interface the evaluation engine needs from any storage backend."""

    def get_element(self, element_id: str) -> Element | None: ...

    def get_page(self, page_id: str) -> Page | None: ...

    def get_group(self, group_id: str) -> Group | None: ...


@dataclass
class FormIndex:
    """Lookup maps built once per evaluation call.

    Insertion order of every map follows the stored order of the form, so
    iteration is deterministic.
    """

    groups: dict[str, Group] = field(default_factory=dict)
    pages: dict[str, Page] = field(default_factory=dict)
    elements: dict[str, Element] = field(default_factory=dict)
    group_pages: dict[str, list[str]] = field(default_factory=dict)
    page_elements: dict[str, list[str]] = field(default_factory=dict)
    page_owner: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, form: Form) -> FormIndex:
        """Index *form*; duplicate ids keep the first definition and log a warning."""
        index = cls()

        for group in form.groups:
            if group.id in index.groups:
                logger.warning("Duplicate group id '%s' ignored", group.id)
                continue
            index.groups[group.id] = group
            index.group_pages[group.id] = []
        for page in form.pages:
            if page.id in index.pages:
                logger.warning("Duplicate page id '%s' ignored", page.id)
                continue
            index.pages[page.id] = page
            index.page_elements[page.id] = list(page.element_ids)
        for element in form.elements:
            if element.id in index.elements:
                logger.warning("Duplicate element id '%s' ignored", element.id)
                continue
            index.elements[element.id] = element

        # Group membership: explicit page lists first, then back-references.
        for group in index.groups.values():
            for page_id in group.page_ids:
                index._attach_page(group.id, page_id)
        for page in index.pages.values():
            if page.group_id is not None and page.id not in index.page_owner:
                if page.group_id in index.groups:
                    index._attach_page(page.group_id, page.id)
                else:
                    logger.warning(
                        "Page '%s' references unknown group '%s'", page.id, page.group_id
                    )

        return index

    def _attach_page(self, group_id: str, page_id: str) -> None:
        owner = self.page_owner.get(page_id)
        if owner is not None:
            if owner != group_id:
                logger.warning(
                    "Page '%s' already belongs to group '%s', ignoring group '%s'",
                    page_id,
                    owner,
                    group_id,
                )
            return
        self.page_owner[page_id] = group_id
        self.group_pages[group_id].append(page_id)

    # -- StructureSource -----------------------------------------------------

    def get_element(self, element_id: str) -> Element | None:
        return self.elements.get(element_id)

    def get_page(self, page_id: str) -> Page | None:
        return self.pages.get(page_id)

    def get_group(self, group_id: str) -> Group | None:
        return self.groups.get(group_id)

    # -- Containment ---------------------------------------------------------

    def pages_of_group(self, group_id: str) -> list[Page]:
        """Pages that belong to *group_id*, skipping ids with no page definition."""
        pages: list[Page] = []
        for page_id in self.group_pages.get(group_id, []):
            page = self.pages.get(page_id)
            if page is None:
                logger.warning("Group '%s' references unknown page '%s'", group_id, page_id)
                continue
            pages.append(page)
        return pages

    def elements_of_page(self, page_id: str) -> list[Element]:
        """Elements placed on *page_id*, in page order; dangling ids are skipped."""
        elements: list[Element] = []
        for element_id in self.page_elements.get(page_id, []):
            element = self.elements.get(element_id)
            if element is None:
                logger.warning("Page '%s' references unknown element '%s'", page_id, element_id)
                continue
            elements.append(element)
        return elements

    def ordered_pages(self) -> list[Page]:
        """Pages in group order, then pages that belong to no group."""
        seen: set[str] = set()
        ordered: list[Page] = []
        for group_id in self.groups:
            for page in self.pages_of_group(group_id):
                if page.id not in seen:
                    seen.add(page.id)
                    ordered.append(page)
        for page in self.pages.values():
            if page.id not in seen:
                seen.add(page.id)
                ordered.append(page)
        return ordered

    def all_elements(self) -> list[Element]:
        """Every element once: page placement order first, then unplaced elements."""
        seen: set[str] = set()
        ordered: list[Element] = []
        for page in self.ordered_pages():
            for element in self.elements_of_page(page.id):
                if element.id not in seen:
                    seen.add(element.id)
                    ordered.append(element)
        for element in self.elements.values():
            if element.id not in seen:
                seen.add(element.id)
                ordered.append(element)
        return ordered
