"""Project types and their default stage pipelines."""

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class ProjectType:
    id: str
    name: str


NO_TEMPLATE = "none"

PROJECT_TYPES: list[ProjectType] = [
    ProjectType(NO_TEMPLATE, "None (Custom Stages)"),
    ProjectType("topographic-survey", "Topographic Survey"),
    ProjectType("geotechnical-investigation", "Geotechnical Investigation"),
    ProjectType("construction-monitoring", "Construction Site Monitoring"),
    ProjectType("reality-scan", "Reality Scan / As-Built"),
    ProjectType("geospatial-analysis", "Geospatial Analysis Project"),
    ProjectType("site-characterization", "Site Characterization"),
    ProjectType("bathymetric-survey", "Bathymetric Survey"),
]

STAGE_TEMPLATES: dict[str, list[str]] = {
    "topographic-survey": [
        "Project Initiation & Planning",
        "Site Reconnaissance & Mobilization",
        "Field Data Acquisition (Survey)",
        "Data Processing & Quality Control",
        "Drafting & Plan Production",
        "Deliverables & Project Closeout",
    ],
    "geotechnical-investigation": [
        "Desktop Study & Proposal",
        "Site Mobilization & H&S",
        "Drilling, Sampling & In-situ Testing",
        "Laboratory Testing",
        "Data Analysis & Geotechnical Report",
        "Client Review & Finalization",
    ],
    "construction-monitoring": [
        "Baseline Survey & Setup",
        "Periodic Monitoring Cycles",
        "Data Processing & Comparison",
        "Reporting & Alerting",
        "Final Survey & Demobilization",
    ],
    "reality-scan": [
        "Scope Definition & Planning",
        "Site Access & Preparation",
        "Scanning & Data Capture",
        "Data Registration & Processing",
        "Modeling & Deliverable Creation",
        "Quality Assurance & Handover",
    ],
    "geospatial-analysis": [
        "Problem Definition & Data Sourcing",
        "Data Preprocessing & Cleaning",
        "Spatial Analysis & Modeling",
        "Visualization & Map Production",
        "Reporting & Dissemination",
    ],
    "site-characterization": [
        "Desktop Study & Planning",
        "Field Investigation (Geophysics, Sampling)",
        "Laboratory Testing & Analysis",
        "Data Interpretation & Modeling",
        "Reporting & Recommendations",
    ],
    "bathymetric-survey": [
        "Survey Planning & Mobilization",
        "Data Acquisition (Sonar, Lidar)",
        "Data Processing & Cleaning",
        "Chart Production & Analysis",
        "Deliverables & QC",
    ],
}


def stages_for_project_types(type_ids: Iterable[str]) -> list[str]:
    """Default stage names for the selected project types.

    Templates are concatenated in selection order; a stage name already
    contributed by an earlier template is skipped. Unknown ids and "none"
    contribute nothing.
    """
    names: list[str] = []
    seen: set[str] = set()
    for type_id in type_ids:
        for stage_name in STAGE_TEMPLATES.get(type_id, []):
            if stage_name not in seen:
                seen.add(stage_name)
                names.append(stage_name)
    return names
