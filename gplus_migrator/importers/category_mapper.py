"""
Mapping of Google+ community categories to Discourse categories.

The operator maintains ``categories.json``. Starting from an empty ``{}``,
the first run writes ``categories.json.new`` with an entry for every
category found in the feeds; once every entry names a Discourse category the
file can be renamed back and the import re-run.
"""

import json
import logging
from typing import Dict, Iterable, List, Optional

from ..errors import CategoryLookupError, ConfigurationError
from ..models import CategoryMapping, Feed, TargetCategory
from .stores import CategoryStore

logger = logging.getLogger('gplus_migrator.importers.category_mapper')


class CategoryMapper:
    """Checks the category mapping and resolves it against Discourse."""

    def __init__(
        self,
        mappings: Dict[str, CategoryMapping],
        categories_path: Optional[str],
        category_store: Optional[CategoryStore] = None,
        dry_run: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the category mapper.

        Args:
            mappings: Entries from categories.json keyed by Google+ category id
            categories_path: Path categories.json was loaded from
            category_store: Discourse category lookup (may be None in dry-run)
            dry_run: If True, never create categories
            logger: Logger instance
        """
        self.mappings = mappings
        self.categories_path = categories_path
        self.category_store = category_store
        self.dry_run = dry_run
        self.logger = logger or logging.getLogger('gplus_migrator.importers.category_mapper')

    def prepare(self, feeds: Iterable[Feed]) -> Dict[str, CategoryMapping]:
        """
        Run the whole startup sequence: read, check and map categories.

        Raises:
            ConfigurationError: If no categories file was given or entries are incomplete
            CategoryLookupError: If a category or parent does not exist in Discourse
        """
        if self.categories_path is None:
            raise ConfigurationError("Must provide a categories.json file")

        self.read_categories(feeds)
        self.check_categories()
        self.map_categories()
        return self.mappings

    def read_categories(self, feeds: Iterable[Feed]) -> None:
        """Add an empty entry for every feed category the file does not mention yet."""
        for feed in feeds:
            for community, category in feed.iter_categories():
                mapping = self.mappings.get(category.id)
                if mapping is None:
                    self.mappings[category.id] = CategoryMapping(
                        external_id=category.id,
                        name=category.name,
                        community=community.name
                    )
                elif not mapping.community:
                    mapping.community = community.name

    def incomplete_categories(self) -> List[str]:
        return [mapping.name for mapping in self.mappings.values() if not mapping.is_complete]

    def check_categories(self) -> None:
        """
        Fail with a fill-in template if any entry lacks a Discourse category.

        Raises:
            ConfigurationError: With ``template_path`` set to the written template
        """
        incomplete = self.incomplete_categories()
        if not incomplete:
            return

        template_path = f"{self.categories_path}.new"
        self.write_template(template_path)
        raise ConfigurationError(
            f"Category file missing categories for {incomplete}, edit {template_path} "
            f"and rename it to {self.categories_path} before running the same import",
            template_path=template_path
        )

    def write_template(self, path: str) -> None:
        data = {external_id: mapping.to_dict() for external_id, mapping in self.mappings.items()}
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)
        self.logger.warning(f"Wrote category template to {path}")

    def map_categories(self) -> None:
        """Resolve every entry to a Discourse category."""
        self.logger.info("Mapping categories from Google+ to Discourse...")

        for mapping in self.mappings.values():
            parent_id = None
            if mapping.parent_name:
                parent = self._find_or_create(mapping.parent_name, None, mapping.auto_create)
                if parent is None:
                    if not self.dry_run:
                        raise CategoryLookupError(
                            f"Could not find parent category {mapping.parent_name}"
                        )
                    continue
                parent_id = parent.id

            category = self._find_or_create(mapping.target_name, parent_id, mapping.auto_create)
            if category is None and not self.dry_run:
                raise CategoryLookupError(
                    f"Could not find category {mapping.target_name} for {mapping.to_dict()}"
                )

            mapping.target = category
            if category is not None:
                self.logger.debug(f"Category {mapping.name} -> {category.name} (id {category.id})")

    def _find_or_create(
        self,
        name: str,
        parent_id: Optional[int],
        auto_create: bool
    ) -> Optional[TargetCategory]:
        if self.category_store is None:
            return None

        category = self.category_store.find_category(name, parent_id)
        if category is not None or not auto_create:
            return category

        if self.dry_run:
            self.logger.info(f"[DRY RUN] Would create category {name}")
            return None
        return self.category_store.create_category(name, parent_id)


__all__ = ['CategoryMapper']
