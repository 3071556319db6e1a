"""
multipath.conf recommendation engine.

Compares the device section of the live multipath configuration against the
per-vendor recommended values shipped in templates/recommendations.json and
produces one compliance verdict per template parameter. The verdicts can then
be applied back into a parsed configuration tree.

A parameter missing from the live configuration is reported the same way as a
parameter with the wrong value: NOT_RECOMMENDED, with an empty current value.
"""

import hashlib
import json
import logging
import os
import re
from typing import List, Optional, Sequence

from .config import (ComplianceStatus, ConfigSection, DeviceRecommendation, MultipathConfig,
                     ParameterTemplate, Recommendation, RecommendationTemplate)
from .constants import MultipathConstants
from .exceptions import MultipathError


class RecommendationEngine:
    """Computes and applies multipath.conf device recommendations.

    Args:
        templates: Preloaded recommendation templates; the packaged
                   recommendations.json is loaded when omitted
    """

    def __init__(self, templates: Optional[Sequence[RecommendationTemplate]] = None):
        self.logger = logging.getLogger(__name__)
        self._param_pattern = re.compile(MultipathConstants.PARAM_PATTERN)
        self.templates = list(templates) if templates is not None else self.load_templates()

    def load_templates(self, path: Optional[str] = None) -> List[RecommendationTemplate]:
        """Load recommendation templates, keeping the device type order of the file.

        Args:
            path: JSON template file (defaults to the packaged template)

        Returns:
            List of RecommendationTemplate, one per device type

        Raises:
            MultipathError: If the file cannot be read or is not a valid template
        """
        if path is None:
            path = os.path.join(MultipathConstants.TEMPLATE_DIR, MultipathConstants.RECOMMENDATION_TEMPLATE)

        self.logger.debug("Loading recommendation templates from %s", path)
        try:
            with open(path, 'r') as f:
                data = json.load(f)
        except OSError as e:
            raise MultipathError(f"Cannot read recommendation template {path}: {e}")
        except ValueError as e:
            raise MultipathError(f"Invalid recommendation template {path}: {e}")

        if not isinstance(data, dict):
            raise MultipathError(f"Invalid recommendation template {path}: expected an object")

        templates = []
        for device_type, parameters in data.items():
            try:
                templates.append(RecommendationTemplate.from_config_dict(device_type, parameters))
            except (AttributeError, KeyError, TypeError) as e:
                raise MultipathError(f"Invalid template for device type {device_type} in {path}: {e}")
        return templates

    def get_template(self, device_type: str) -> Optional[RecommendationTemplate]:
        for template in self.templates:
            if template.device_type == device_type:
                return template
        return None

    @property
    def device_types(self) -> List[str]:
        return [template.device_type for template in self.templates]

    def find_parameter(self, device_block: str, key: str) -> Optional[str]:
        """Return the raw value of the first line of ``device_block`` named ``key``.

        Lines that do not look like "name value" are logged and skipped.

        Returns:
            The value as written, or None if no line has that name
        """
        for line in device_block.splitlines():
            if not line.strip():
                continue
            match = self._param_pattern.match(line)
            if match is None:
                self.logger.error("Unable to parse multipath.conf line '%s'", line.strip())
                continue
            if match.group("name") == key:
                return match.group("value")
        return None

    @staticmethod
    def normalize_value(value: str) -> str:
        """Trim whitespace and surrounding quotes from a live value."""
        return value.strip().strip('"').strip()

    @staticmethod
    def make_recommendation_id(parameter: str,
                               category: str = MultipathConstants.CATEGORY_MULTIPATH,
                               scope: str = MultipathConstants.SCOPE_DEVICE) -> str:
        """Stable identifier of a recommendation (hash of category, scope and parameter)."""
        return hashlib.sha256(f"{category}{scope}{parameter}".encode()).hexdigest()

    def make_recommendation(self, parameter: str, template: ParameterTemplate,
                            current: Optional[str]) -> Recommendation:
        """Build the verdict for one parameter given its live value (None when absent)."""
        value = self.normalize_value(current) if current is not None else ""
        if current is not None and value == template.recommendation:
            status = ComplianceStatus.RECOMMENDED
        else:
            status = ComplianceStatus.NOT_RECOMMENDED

        return Recommendation(
            id=self.make_recommendation_id(parameter),
            category=MultipathConstants.CATEGORY_MULTIPATH,
            level=template.severity,
            description=template.description,
            parameter=parameter,
            value=value,
            recommendation=template.recommendation,
            compliant_status=status,
            device=MultipathConstants.DEVICE_ALL,
        )

    def compute_recommendations(self, device_block: str,
                                templates: Optional[Sequence[RecommendationTemplate]] = None
                                ) -> List[DeviceRecommendation]:
        """Compute the verdicts of every template parameter against ``device_block``.

        Args:
            device_block: Contents of a live device section ("" if none)
            templates: Templates to evaluate (all loaded templates by default)

        Returns:
            One DeviceRecommendation per template, in template order
        """
        if templates is None:
            templates = self.templates

        results = []
        for template in templates:
            recommendations = []
            for parameter, param_template in template.parameters.items():
                current = self.find_parameter(device_block, parameter)
                recommendations.append(self.make_recommendation(parameter, param_template, current))
            self.logger.debug("Computed %d recommendations for device type %s",
                              len(recommendations), template.device_type)
            results.append(DeviceRecommendation(device_type=template.device_type,
                                                recommendations=recommendations))
        return results

    def extract_device_block(self, content: str, device_type: str) -> str:
        """Extract the body of the ``devices { device { ... } }`` block of a device type.

        Returns:
            The block body, or "" when no block is tagged with the device type
        """
        tag = MultipathConstants.DEVICE_BLOCK_TAGS.get(device_type, device_type)
        pattern = r"(?s)devices\s+\{\s*.*device\s*\{(?P<device_block>.*" + re.escape(tag) + r".*?)\}"
        match = re.search(pattern, content)
        if match is None:
            self.logger.debug("No %s device block found", device_type)
            return ""
        return match.group("device_block")

    def apply_recommendations(self, config: MultipathConfig, recommendations: Sequence[Recommendation],
                              device_type: str) -> ConfigSection:
        """Write recommended values into the device section of ``device_type``.

        The device section is looked up by vendor and created (with its
        ``devices`` parent) when missing. ``defaults/find_multipaths`` is forced
        to "no" when it is missing or "yes".

        Returns:
            The device section that was updated
        """
        vendor = MultipathConstants.DEVICE_TYPE_VENDORS.get(device_type, device_type)
        section = config.get_device_section(vendor)
        if section is None:
            self.logger.info("Adding device section for %s", vendor)
            devices = config.get_or_add_section("devices")
            section = config.add_section("device", devices)

        for recommendation in recommendations:
            if recommendation.compliant_status != ComplianceStatus.RECOMMENDED:
                self.logger.debug("Setting %s %s for %s", recommendation.parameter,
                                  recommendation.recommendation, vendor)
            section.properties[recommendation.parameter] = recommendation.recommendation

        defaults = config.get_or_add_section("defaults")
        find_multipaths = MultipathConstants.FIND_MULTIPATHS
        if find_multipaths not in defaults.properties or defaults.get_property(find_multipaths) == "yes":
            self.logger.info("Setting %s to no", find_multipaths)
            defaults.properties[find_multipaths] = "no"

        return section
