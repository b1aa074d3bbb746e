"""Bundled sample dataset of the UK zero emission aviation ecosystem.

Used when no ``NAVIGATE_DATASET_DIR`` is configured, by ``navigate-populate``
and throughout the tests. Every cross-reference resolves, so it loads under
strict integrity checking.
"""
from __future__ import annotations

from typing import Any

from navigate.models import Dataset

CREATED = "2023-01-01T00:00:00Z"
UPDATED = "2024-06-01T00:00:00Z"

_VERIFIED = {"confidence": "verified", "last_verified": UPDATED}
_ESTIMATED = {"confidence": "estimated", "last_verified": "2023-06-01T00:00:00Z"}


def _stamp(record: dict[str, Any]) -> dict[str, Any]:
    return {"created_at": CREATED, "updated_at": UPDATED, **record}


DFT_KNOWLEDGE = """\
# Strategic Position
The Department for Transport (DfT) is the UK government's lead department for transport policy. \
In zero emission aviation, DfT sets policy frameworks, allocates funding and coordinates cross-sector initiatives.

## Funding Strategy
DfT allocates approximately £125M annually to zero emission aviation through the ATI Programme, \
the Future Flight Challenge and direct grants to strategic projects.

## Strategic Priorities
1. Hydrogen aviation infrastructure
2. Battery-electric for short-haul
3. Sustainable aviation fuels (SAF)
4. Regulatory framework development
"""

ZEROAVIA_KNOWLEDGE = """\
# Strategic Position
ZeroAvia is positioning itself as the leader in hydrogen-electric powertrains for regional aircraft, \
betting that hydrogen offers a better range/weight ratio than batteries for 10-80 seat aircraft.

## Strategic Partnerships
A strong relationship with British Airways (LOI for 10-50 aircraft) signals a commercial pathway.

## Risk Factors
- Dependent on hydrogen infrastructure at airports
- Competition from Airbus (ZEROe programme)
- Certification timeline uncertain (3-5 year range)
"""

STAKEHOLDERS: list[dict[str, Any]] = [
    {
        "id": "org-dft-001", "name": "Department for Transport", "type": "Government",
        "sector": "Transport", "funding_capacity": "High",
        "location": {"city": "London", "region": "London", "country": "UK"},
        "contact": {"website": "https://www.gov.uk/dft", "email": "public.enquiries@dft.gov.uk"},
        "description": "UK government department responsible for transport strategy and policy",
        "tags": ["policy", "funding", "infrastructure", "aviation"],
        "data_quality": _VERIFIED,
        "capacity_scenarios": {"optimistic": 150_000_000, "conservative": 80_000_000, "current": 125_000_000},
        "knowledge_base": {
            "content": DFT_KNOWLEDGE,
            "sources": [
                {"title": "Jet Zero Strategy", "url": "https://www.gov.uk/jet-zero",
                 "date": "2021-07-19", "type": "report"},
                {"title": "DfT Annual Report 2024", "url": "https://www.gov.uk/dft",
                 "date": "2024-03-15", "type": "report"},
            ],
            "last_updated": UPDATED, "contributors": ["admin"],
            "tags": ["strategic", "policy", "funding"], "confidence": "verified",
        },
    },
    {
        "id": "org-ukri-001", "name": "UK Research and Innovation", "type": "Government",
        "sector": "Research", "funding_capacity": "High",
        "location": {"city": "Swindon", "region": "South West", "country": "UK"},
        "contact": {"website": "https://www.ukri.org"},
        "description": "UKRI funds and supports research and innovation across all sectors",
        "tags": ["research", "funding", "innovation"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-beis-001", "name": "Department for Business, Energy & Industrial Strategy",
        "type": "Government", "sector": "Energy", "funding_capacity": "High",
        "location": {"city": "London", "region": "London", "country": "UK"},
        "contact": {"website": "https://www.gov.uk/beis"},
        "description": "Government department supporting business, energy, and industrial strategy",
        "tags": ["policy", "energy", "industrial-strategy"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-ati-001", "name": "Aerospace Technology Institute", "type": "Intermediary",
        "sector": "Aerospace", "funding_capacity": "High",
        "location": {"city": "Cranfield", "region": "East of England", "country": "UK"},
        "contact": {"website": "https://www.ati.org.uk", "email": "info@ati.org.uk"},
        "description": "UK's national institute for aerospace research and technology development",
        "tags": ["intermediary", "funding", "research", "aviation"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-innovate-uk-001", "name": "Innovate UK", "type": "Intermediary",
        "sector": "Research", "funding_capacity": "High",
        "location": {"city": "Swindon", "region": "South West", "country": "UK"},
        "contact": {"website": "https://www.ukri.org/councils/innovate-uk/"},
        "description": "UK's innovation agency, part of UKRI",
        "tags": ["intermediary", "funding", "innovation"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-cranfield-001", "name": "Cranfield University", "type": "Research",
        "sector": "Aerospace", "funding_capacity": "Medium",
        "location": {"city": "Cranfield", "region": "East of England", "country": "UK"},
        "contact": {"website": "https://www.cranfield.ac.uk", "email": "aviation@cranfield.ac.uk"},
        "description": "Leading UK university for aerospace research and education",
        "tags": ["university", "research", "fuel-cells", "hydrogen"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-bristol-001", "name": "University of Bristol", "type": "Research",
        "sector": "Aerospace", "funding_capacity": "Medium",
        "location": {"city": "Bristol", "region": "South West", "country": "UK"},
        "contact": {"website": "https://www.bristol.ac.uk"},
        "description": "Research university with strong aerospace engineering programs",
        "tags": ["university", "research", "aircraft-design"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-manchester-001", "name": "University of Manchester", "type": "Research",
        "sector": "Energy", "funding_capacity": "Medium",
        "location": {"city": "Manchester", "region": "North West", "country": "UK"},
        "contact": {"website": "https://www.manchester.ac.uk"},
        "description": "Research university with hydrogen production expertise",
        "tags": ["university", "research", "hydrogen-production"], "data_quality": _ESTIMATED,
    },
    {
        "id": "org-zeroavia-001", "name": "ZeroAvia", "type": "Industry",
        "sector": "Aviation", "funding_capacity": "High",
        "location": {"city": "Hollister", "region": "California", "country": "International"},
        "contact": {"website": "https://www.zeroavia.com", "email": "info@zeroavia.com"},
        "description": "Leading developer of hydrogen-electric powertrains for regional aircraft",
        "tags": ["hydrogen", "aircraft", "TRL-7", "fuel-cells"], "data_quality": _VERIFIED,
        "knowledge_base": {
            "content": ZEROAVIA_KNOWLEDGE,
            "sources": [
                {"title": "Series C Funding Round", "url": "https://techcrunch.com/zeroavia-series-c",
                 "date": "2024-01-15", "type": "news"},
            ],
            "last_updated": UPDATED, "contributors": ["admin"],
            "tags": ["strategic-assessment", "risk-analysis", "regulatory"], "confidence": "verified",
        },
    },
    {
        "id": "org-rolls-royce-001", "name": "Rolls-Royce", "type": "Industry",
        "sector": "Aerospace", "funding_capacity": "High",
        "location": {"city": "Derby", "region": "East Midlands", "country": "UK"},
        "contact": {"website": "https://www.rolls-royce.com"},
        "description": "Major aerospace manufacturer developing hydrogen propulsion systems",
        "tags": ["hydrogen", "aircraft", "TRL-6", "engines"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-airbus-001", "name": "Airbus", "type": "Industry",
        "sector": "Aerospace", "funding_capacity": "High",
        "location": {"city": "Toulouse", "region": "Occitanie", "country": "International"},
        "contact": {"website": "https://www.airbus.com"},
        "description": "Major aircraft manufacturer with Zeroe hydrogen aircraft program",
        "tags": ["hydrogen", "aircraft", "TRL-5", "zeroe"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-itm-power-001", "name": "ITM Power", "type": "Industry",
        "sector": "Energy", "funding_capacity": "Medium",
        "location": {"city": "Sheffield", "region": "Yorkshire", "country": "UK"},
        "contact": {"website": "https://www.itm-power.com"},
        "description": "Leading UK manufacturer of electrolysers for green hydrogen production",
        "tags": ["hydrogen-production", "electrolysis", "TRL-8"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-linde-001", "name": "Linde", "type": "Industry",
        "sector": "Energy", "funding_capacity": "High",
        "location": {"city": "Guildford", "region": "South East", "country": "UK"},
        "contact": {"website": "https://www.linde.com"},
        "description": "Global industrial gases company, leader in hydrogen infrastructure",
        "tags": ["hydrogen-storage", "infrastructure", "TRL-9"], "data_quality": _VERIFIED,
    },
    {
        "id": "org-british-airways-001", "name": "British Airways", "type": "Industry",
        "sector": "Aviation", "funding_capacity": "High",
        "location": {"city": "London", "region": "London", "country": "UK"},
        "contact": {"website": "https://www.britishairways.com"},
        "description": "UK flag carrier airline, committed to net zero by 2050",
        "tags": ["airline", "operator", "customer"], "data_quality": _VERIFIED,
    },
]

TECHNOLOGIES: list[dict[str, Any]] = [
    {
        "id": "tech-h2-electrolysis-001", "name": "Green Hydrogen Electrolysis",
        "category": "H2Production", "trl_current": 8, "deployment_ready": True,
        "maturity_risk": "Proven technology / Scale-up challenges / Cost reduction needed",
        "description": "Electrolysis systems for producing green hydrogen from renewable electricity",
        "tags": ["hydrogen-production", "electrolysis", "green-energy"],
        "regional_availability": ["Scotland", "South East", "Yorkshire"], "data_quality": _VERIFIED,
    },
    {
        "id": "tech-h2-reforming-001", "name": "Steam Methane Reforming with CCS",
        "category": "H2Production", "trl_current": 7, "deployment_ready": True,
        "maturity_risk": "Proven / CCS integration / Cost",
        "description": "Blue hydrogen production with carbon capture and storage",
        "tags": ["hydrogen-production", "CCS", "blue-hydrogen"], "data_quality": _VERIFIED,
    },
    {
        "id": "tech-h2-storage-compressed-001", "name": "Compressed Hydrogen Storage (350 bar)",
        "category": "H2Storage", "trl_current": 8, "deployment_ready": True,
        "maturity_risk": "Proven / Weight constraints / Volume efficiency",
        "description": "High-pressure compressed hydrogen storage systems for aircraft",
        "tags": ["hydrogen-storage", "compressed", "aircraft"],
        "regional_availability": ["South East", "Scotland"], "data_quality": _VERIFIED,
    },
    {
        "id": "tech-h2-storage-liquid-001", "name": "Liquid Hydrogen Storage Systems",
        "category": "H2Storage", "trl_current": 6, "deployment_ready": False,
        "maturity_risk": "Proven elsewhere / Airport barriers / Scalability issues",
        "description": "Cryogenic storage systems for liquid hydrogen at -253°C",
        "tags": ["hydrogen-storage", "cryogenic", "liquid"],
        "regional_availability": ["Scotland"], "data_quality": _ESTIMATED,
    },
    {
        "id": "tech-fuel-cell-pem-001", "name": "PEM Fuel Cells for Aviation",
        "category": "FuelCells", "trl_current": 7, "deployment_ready": True,
        "maturity_risk": "Proven / Power density / Durability",
        "description": "Proton Exchange Membrane fuel cells optimized for aircraft applications",
        "tags": ["fuel-cells", "PEM", "aircraft"],
        "regional_availability": ["South East", "East of England"], "data_quality": _VERIFIED,
    },
    {
        "id": "tech-fuel-cell-sofc-001", "name": "Solid Oxide Fuel Cells",
        "category": "FuelCells", "trl_current": 5, "deployment_ready": False,
        "maturity_risk": "Early stage / High temperature / Start-up time",
        "description": "High-temperature fuel cells with potential for higher efficiency",
        "tags": ["fuel-cells", "SOFC", "high-efficiency"], "data_quality": _ESTIMATED,
    },
    {
        "id": "tech-aircraft-regional-h2-001", "name": "Regional Hydrogen Aircraft (10-80 seats)",
        "category": "Aircraft", "trl_current": 6, "deployment_ready": False,
        "maturity_risk": "Prototype / Certification / Infrastructure",
        "description": "Regional aircraft designed for hydrogen-electric propulsion",
        "tags": ["aircraft", "regional", "hydrogen"],
        "regional_availability": ["South East"], "data_quality": _VERIFIED,
    },
    {
        "id": "tech-aircraft-narrowbody-h2-001", "name": "Narrow-body Hydrogen Aircraft (150+ seats)",
        "category": "Aircraft", "trl_current": 4, "deployment_ready": False,
        "maturity_risk": "Concept / Storage challenges / Range limitations",
        "description": "Single-aisle aircraft concepts for hydrogen propulsion",
        "tags": ["aircraft", "narrow-body", "hydrogen"], "data_quality": _ESTIMATED,
    },
    {
        "id": "tech-infra-refueling-001", "name": "Airport Hydrogen Refueling Infrastructure",
        "category": "Infrastructure", "trl_current": 5, "deployment_ready": False,
        "maturity_risk": "Early deployment / Regulatory / Cost",
        "description": "Ground infrastructure for hydrogen refueling at airports",
        "tags": ["infrastructure", "refueling", "airports"],
        "regional_availability": ["London", "Scotland"], "data_quality": _ESTIMATED,
    },
]

FUNDING_EVENTS: list[dict[str, Any]] = [
    {
        "id": "fund-001", "amount": 35_000_000, "funding_type": "Public",
        "source_id": "org-dft-001", "recipient_id": "org-ati-001", "recipient_type": "stakeholder",
        "program": "ATI Programme - Core Funding", "program_type": "grant",
        "date": "2023-01-01", "start_date": "2023-01-01", "end_date": "2025-12-31", "status": "Active",
        "impact_description": "Core funding for ATI to distribute to zero emission aviation projects",
        "data_quality": _VERIFIED,
    },
    {
        "id": "fund-002", "amount": 15_000_000, "funding_type": "Public",
        "source_id": "org-ati-001", "recipient_id": "org-zeroavia-001", "recipient_type": "stakeholder",
        "program": "ATI Programme - Round 3", "program_type": "grant",
        "date": "2023-06-15", "start_date": "2023-06-15", "end_date": "2025-06-14", "status": "Active",
        "impact_description": "Enabling flight testing of 19-seat hydrogen-electric aircraft",
        "technologies_supported": ["tech-aircraft-regional-h2-001", "tech-fuel-cell-pem-001"],
        "trl_impact": {"before": 5, "after": 7}, "data_quality": _VERIFIED,
    },
    {
        "id": "fund-003", "amount": 10_000_000, "funding_type": "Private",
        "source_id": "org-british-airways-001", "recipient_id": "org-zeroavia-001",
        "recipient_type": "stakeholder", "program": "Strategic Partnership", "program_type": "partnership",
        "date": "2024-01-20", "status": "Active",
        "impact_description": "Strategic partnership for future aircraft orders", "data_quality": _VERIFIED,
    },
    {
        "id": "fund-004", "amount": 5_000_000, "funding_type": "Public",
        "source_id": "org-ukri-001", "recipient_id": "org-cranfield-001", "recipient_type": "stakeholder",
        "program": "Future Flight Challenge", "program_type": "grant", "date": "2023-03-10", "status": "Active",
        "impact_description": "Research into fuel cell optimization for aviation",
        "technologies_supported": ["tech-fuel-cell-pem-001"], "data_quality": _VERIFIED,
    },
    {
        "id": "fund-005", "amount": 8_000_000, "funding_type": "Public",
        "source_id": "org-ati-001", "recipient_id": "org-rolls-royce-001", "recipient_type": "stakeholder",
        "program": "ATI Programme - Round 2", "program_type": "grant", "date": "2022-09-01",
        "status": "Completed",
        "impact_description": "Development of hydrogen combustion engine technology",
        "technologies_supported": ["tech-aircraft-regional-h2-001"],
        "trl_impact": {"before": 4, "after": 6}, "data_quality": _VERIFIED,
    },
    {
        "id": "fund-006", "amount": 3_000_000, "funding_type": "Public",
        "source_id": "org-innovate-uk-001", "recipient_id": "org-itm-power-001",
        "recipient_type": "stakeholder", "program": "SBRI - Hydrogen Production", "program_type": "SBRI",
        "date": "2023-11-05", "status": "Active",
        "impact_description": "Development of high-efficiency electrolysers for aviation use",
        "technologies_supported": ["tech-h2-electrolysis-001"], "data_quality": _VERIFIED,
    },
    {
        "id": "fund-007", "amount": 1_200_000, "funding_type": "Public",
        "source_id": "org-ukri-001", "recipient_id": "org-bristol-001", "recipient_type": "stakeholder",
        "program": "EPSRC Research Grant", "program_type": "grant", "date": "2023-08-15", "status": "Active",
        "impact_description": "Research into liquid hydrogen storage systems",
        "technologies_supported": ["tech-h2-storage-liquid-001"],
        "trl_impact": {"before": 5, "after": 6}, "data_quality": _ESTIMATED,
    },
]

PROJECTS: list[dict[str, Any]] = [
    {
        "id": "proj-zeroavia-h2-flight-001", "name": "ZeroAvia 19-Seat Hydrogen Flight Testing",
        "status": "Active", "start_date": "2023-06-15", "end_date": "2025-06-14",
        "participants": ["org-zeroavia-001", "org-ati-001", "org-cranfield-001"],
        "lead_organization": "org-zeroavia-001",
        "technologies": [
            "tech-aircraft-regional-h2-001", "tech-fuel-cell-pem-001", "tech-h2-storage-compressed-001",
        ],
        "primary_technology": "tech-aircraft-regional-h2-001", "total_budget": 15_000_000,
        "funding_events": ["fund-002"],
        "description": "Flight testing program for 19-seat hydrogen-electric aircraft",
        "objectives": [
            "Complete 100+ flight hours", "Achieve TRL 7 for powertrain",
            "Validate safety and performance", "Prepare for certification",
        ],
        "tags": ["flight-testing", "certification", "hydrogen"],
        "outcomes": {
            "trl_advancement": 2, "publications": 3,
            "commercial_impact": "LOI from British Airways for 10-50 aircraft",
        },
        "data_quality": _VERIFIED,
    },
    {
        "id": "proj-rolls-royce-h2-engine-001", "name": "Rolls-Royce Hydrogen Combustion Engine",
        "status": "Active", "start_date": "2022-09-01", "end_date": "2024-12-31",
        "participants": ["org-rolls-royce-001", "org-ati-001", "org-manchester-001"],
        "lead_organization": "org-rolls-royce-001",
        "technologies": ["tech-aircraft-regional-h2-001"],
        "primary_technology": "tech-aircraft-regional-h2-001", "total_budget": 8_000_000,
        "funding_events": ["fund-005"],
        "description": "Development of hydrogen combustion engine for regional aircraft",
        "objectives": ["Develop engine prototype", "Ground testing", "TRL advancement to 6"],
        "tags": ["engine", "hydrogen-combustion"],
        "outcomes": {"trl_advancement": 2}, "data_quality": _VERIFIED,
    },
]

RELATIONSHIPS: list[dict[str, Any]] = [
    {
        "id": "rel-dft-ati-001", "source": "org-dft-001", "target": "org-ati-001",
        "type": "funds", "weight": 35_000_000,
        "metadata": {"amount": 35_000_000, "program": "ATI Programme",
                     "start_date": "2023-01-01", "end_date": "2025-12-31"},
    },
    {
        "id": "rel-ati-zeroavia-001", "source": "org-ati-001", "target": "org-zeroavia-001",
        "type": "funds", "weight": 15_000_000,
        "metadata": {"amount": 15_000_000, "program": "ATI Round 3",
                     "project_id": "proj-zeroavia-h2-flight-001"},
    },
    {
        "id": "rel-ba-zeroavia-001", "source": "org-british-airways-001", "target": "org-zeroavia-001",
        "type": "collaborates_with", "weight": 0.8,
        "metadata": {"description": "Strategic partnership with LOI for aircraft orders"},
    },
    {
        "id": "rel-zeroavia-cranfield-001", "source": "org-zeroavia-001", "target": "org-cranfield-001",
        "type": "collaborates_with", "weight": 0.6,
        "metadata": {"project_id": "proj-zeroavia-h2-flight-001",
                     "description": "Research collaboration on fuel cell optimization"},
    },
    {
        "id": "rel-zeroavia-tech-aircraft-001", "source": "org-zeroavia-001",
        "target": "tech-aircraft-regional-h2-001", "type": "advances", "weight": 0.9,
        "metadata": {"project_id": "proj-zeroavia-h2-flight-001",
                     "description": "Primary developer of regional hydrogen aircraft"},
    },
    {
        "id": "rel-zeroavia-tech-fuelcell-001", "source": "org-zeroavia-001",
        "target": "tech-fuel-cell-pem-001", "type": "advances", "weight": 0.8,
        "metadata": {"description": "Using PEM fuel cells in aircraft"},
    },
]


def sample_records() -> dict[str, list[dict[str, Any]]]:
    """Raw (un-derived) collections, as they would appear in JSON files."""
    return {
        "stakeholders": [_stamp(s) for s in STAKEHOLDERS],
        "technologies": [_stamp(t) for t in TECHNOLOGIES],
        "funding_events": [_stamp(f) for f in FUNDING_EVENTS],
        "projects": [_stamp(p) for p in PROJECTS],
        "relationships": [_stamp(r) for r in RELATIONSHIPS],
    }


def build_sample_dataset() -> Dataset:
    return Dataset.model_validate(sample_records())
