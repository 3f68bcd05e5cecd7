"""
Preset detection items and identification cases for the hazardous-waste lab.

Prices are in yuan. Cases reference detection items by id; the optimal
path of each case is the cheapest purchase set that proves the verdict.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from vstation.core.models import CorrectAnswer, Difficulty, JudgmentResult, PathItem


@dataclass(frozen=True)
class DetectionItem:
    """A purchasable test in the detection shop."""

    id: str
    name: str
    category: str
    price: float
    standard: str = ""

    def as_path_item(self) -> PathItem:
        return PathItem(id=self.id, name=self.name, price=self.price)


@dataclass(frozen=True)
class CaseDefinition:
    """A waste-identification case."""

    id: str
    name: str
    difficulty: Difficulty
    budget: float
    time_limit_seconds: float
    correct_answer: CorrectAnswer
    optimal_path: tuple[str, ...]
    optimal_cost: float
    tags: tuple[str, ...] = field(default_factory=tuple)


DETECTION_CATEGORIES = {
    "corrosivity": "GB 5085.1",
    "acute_toxicity": "GB 5085.2",
    "leaching_toxicity": "GB 5085.3",
    "flammability": "GB 5085.4",
    "reactivity": "GB 5085.5",
    "toxic_content": "GB 5085.6",
}


def _item(item_id: str, name: str, category: str, price: float) -> DetectionItem:
    return DetectionItem(item_id, name, category, price, DETECTION_CATEGORIES[category])


DETECTION_ITEMS: dict[str, DetectionItem] = {
    item.id: item
    for item in (
        _item("det_ph", "pH measurement", "corrosivity", 200),
        _item("det_ld50_oral", "Oral acute toxicity (LD50)", "acute_toxicity", 1500),
        _item("det_ld50_dermal", "Dermal acute toxicity (LD50)", "acute_toxicity", 1500),
        _item("det_lc50", "Inhalation acute toxicity (LC50)", "acute_toxicity", 1800),
        _item("det_pb", "Lead (Pb) leaching", "leaching_toxicity", 500),
        _item("det_cd", "Cadmium (Cd) leaching", "leaching_toxicity", 500),
        _item("det_cr6", "Hexavalent chromium (Cr6+) leaching", "leaching_toxicity", 600),
        _item("det_hg", "Mercury (Hg) leaching", "leaching_toxicity", 800),
        _item("det_as", "Arsenic (As) leaching", "leaching_toxicity", 600),
        _item("det_cu", "Copper (Cu) leaching", "leaching_toxicity", 400),
        _item("det_zn", "Zinc (Zn) leaching", "leaching_toxicity", 400),
        _item("det_ni", "Nickel (Ni) leaching", "leaching_toxicity", 500),
        _item("det_be", "Beryllium (Be) leaching", "leaching_toxicity", 700),
        _item("det_ba", "Barium (Ba) leaching", "leaching_toxicity", 450),
        _item("det_se", "Selenium (Se) leaching", "leaching_toxicity", 600),
        _item("det_flash", "Flash point", "flammability", 400),
        _item("det_ignition", "Ignition temperature", "flammability", 500),
        _item("det_oxidizer", "Oxidizer test", "flammability", 600),
        _item("det_cyanide", "Cyanide reactivity", "reactivity", 700),
        _item("det_sulfide", "Sulfide reactivity", "reactivity", 700),
        _item("det_explosive", "Explosivity", "reactivity", 1000),
        _item("det_water_react", "Water reactivity", "reactivity", 600),
        _item("det_benzene", "Benzene content", "toxic_content", 600),
        _item("det_toluene", "Toluene content", "toxic_content", 600),
        _item("det_xylene", "Xylene content", "toxic_content", 600),
        _item("det_pcb", "Polychlorinated biphenyls (PCBs)", "toxic_content", 1200),
        _item("det_oil", "Mineral oil content", "toxic_content", 500),
        _item("det_phenol", "Phenolic compounds", "toxic_content", 700),
        _item("det_pah", "Polycyclic aromatic hydrocarbons (PAHs)", "toxic_content", 900),
        _item("det_pesticide", "Pesticide residue", "toxic_content", 800),
    )
}


def _case(
    case_id: str,
    name: str,
    difficulty: Difficulty,
    budget: float,
    time_limit: float,
    characteristics: tuple[str, ...],
    path: tuple[str, ...],
    basis: tuple[str, ...],
) -> CaseDefinition:
    return CaseDefinition(
        id=case_id,
        name=name,
        difficulty=difficulty,
        budget=budget,
        time_limit_seconds=time_limit,
        correct_answer=CorrectAnswer(
            result=JudgmentResult.HAZARDOUS,
            characteristics=characteristics,
            required_evidence=path,
            standard_basis=basis,
        ),
        optimal_path=path,
        optimal_cost=sum(DETECTION_ITEMS[i].price for i in path),
    )


PRESET_CASES: dict[str, CaseDefinition] = {
    case.id: case
    for case in (
        _case(
            "case_001", "Electroplating sludge", Difficulty.BEGINNER, 5000, 600,
            ("toxicity",), ("det_cr6", "det_ni"), ("GB5085.3-4.1",),
        ),
        _case(
            "case_002", "Used engine oil from a repair shop", Difficulty.BEGINNER, 4000, 480,
            ("flammability", "toxicity"), ("det_flash", "det_oil"), ("GB5085.4-4.1", "GB5085.6-4.3"),
        ),
        _case(
            "case_003", "Spent acid from a chemical plant", Difficulty.INTERMEDIATE, 3500, 420,
            ("corrosivity",), ("det_ph",), ("GB5085.1-4.1",),
        ),
        _case(
            "case_004", "Infectious hospital waste", Difficulty.INTERMEDIATE, 4000, 480,
            ("infectivity", "toxicity"), ("det_ld50_oral",), ("GB5085.2-4.1",),
        ),
        _case(
            "case_005", "Printing-house waste solvent", Difficulty.ADVANCED, 6000, 600,
            ("flammability", "toxicity"), ("det_flash", "det_toluene", "det_xylene"),
            ("GB5085.4-4.1", "GB5085.6-4.1"),
        ),
    )
}


def get_case(case_id: str) -> CaseDefinition | None:
    return PRESET_CASES.get(case_id)
