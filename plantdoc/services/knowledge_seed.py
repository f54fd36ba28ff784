"""
Seed reference data (Vietnamese names, English synonyms)

Loaded into the in-memory stores when Supabase is not configured and pushed to
Supabase by scripts/seed_knowledge_base.py.
"""
from typing import List

from plantdoc.services.diagnosis import Disease, DiseaseSymptom, PlantType, SymptomEntry

# ============================================================================
# Plant types
# ============================================================================
PLANT_TYPES: List[PlantType] = [
    PlantType("coconut", "Cây dừa", "Cocos nucifera", "Arecaceae"),
    PlantType("rice", "Cây lúa", "Oryza sativa", "Poaceae"),
    PlantType("coffee", "Cây cà phê", "Coffea arabica", "Rubiaceae"),
    PlantType("pothos", "Cây trầu bà", "Epipremnum aureum", "Araceae"),
    PlantType("rose", "Cây hoa hồng", "Rosa", "Rosaceae"),
]

# ============================================================================
# Symptom dictionary
# ============================================================================
SYMPTOMS: List[SymptomEntry] = [
    SymptomEntry("brown-spots", "đốm nâu", "leaf", 1.0, ("brown spots", "brown spot", "vết nâu")),
    SymptomEntry("yellow-leaves", "lá vàng", "leaf", 0.8, ("yellow leaves", "yellowing leaves", "vàng lá")),
    SymptomEntry("white-powder", "phấn trắng", "leaf", 1.0, ("white powder", "white spots", "đốm trắng")),
    SymptomEntry("leaf-curl", "xoăn lá", "leaf", 0.6, ("leaf curl", "curled leaves", "lá quăn")),
    SymptomEntry("wilting", "héo rũ", "general", 0.9, ("wilting", "wilted", "cây héo")),
    SymptomEntry("root-rot", "thối rễ", "root", 1.0, ("root rot", "rotten roots", "rễ thối")),
    SymptomEntry("black-spots", "đốm đen", "leaf", 1.0, ("black spots", "black spot")),
    SymptomEntry("leaf-drop", "rụng lá", "leaf", 0.5, ("leaf drop", "dropping leaves", "lá rụng")),
    SymptomEntry("orange-pustules", "bột cam", "leaf", 1.0, ("orange powder", "rust pustules", "gỉ sắt")),
    SymptomEntry("diamond-lesions", "vết bệnh hình thoi", "leaf", 1.0, ("diamond shaped lesions", "spindle lesions")),
    SymptomEntry("bud-rot", "thối đọt", "stem", 1.0, ("bud rot", "rotten crown", "thối ngọn")),
    SymptomEntry("stunted-growth", "còi cọc", "general", 0.5, ("stunted growth", "stunted", "chậm lớn")),
]

# ============================================================================
# Diseases
# ============================================================================
DISEASES: List[Disease] = [
    Disease(
        id="rose-black-spot",
        name="Bệnh đốm đen",
        english_name="Black spot",
        plant_type_id="rose",
        severity="Medium",
        symptoms=[
            DiseaseSymptom("black-spots", 0.6, is_primary=True, affected_part="leaf"),
            DiseaseSymptom("yellow-leaves", 0.25, affected_part="leaf"),
            DiseaseSymptom("leaf-drop", 0.15, affected_part="leaf"),
        ],
        causes=["Nấm Diplocarpon rosae", "Lá ướt kéo dài"],
        immediate_actions=["Cắt bỏ lá bệnh", "Phun thuốc gốc đồng"],
        prevention_tips=["Tưới gốc, tránh làm ướt lá", "Trồng thưa thoáng"],
        watering_advice="Tưới vào buổi sáng, tránh tưới lên lá",
        product_keywords=["thuốc trừ nấm", "gốc đồng"],
    ),
    Disease(
        id="powdery-mildew",
        name="Bệnh phấn trắng",
        english_name="Powdery mildew",
        plant_type_id=None,
        severity="Medium",
        symptoms=[
            DiseaseSymptom("white-powder", 0.6, is_primary=True, affected_part="leaf"),
            DiseaseSymptom("leaf-curl", 0.4, affected_part="leaf"),
        ],
        causes=["Nấm Erysiphales", "Độ ẩm cao, thiếu ánh sáng"],
        immediate_actions=["Cắt bỏ phần bị bệnh", "Phun lưu huỳnh hoặc baking soda loãng"],
        long_term_care=["Đặt cây nơi thông thoáng"],
        prevention_tips=["Không tưới lên lá vào chiều tối"],
        lighting_advice="Cần nhiều ánh sáng tán xạ",
        product_keywords=["thuốc trừ nấm", "lưu huỳnh"],
    ),
    Disease(
        id="rice-blast",
        name="Bệnh đạo ôn",
        english_name="Rice blast",
        plant_type_id="rice",
        severity="High",
        symptoms=[
            DiseaseSymptom("diamond-lesions", 0.7, is_primary=True, affected_part="leaf"),
            DiseaseSymptom("brown-spots", 0.3, affected_part="leaf"),
        ],
        causes=["Nấm Pyricularia oryzae", "Bón thừa đạm"],
        immediate_actions=["Ngưng bón đạm", "Phun thuốc đặc trị đạo ôn"],
        prevention_tips=["Dùng giống kháng bệnh", "Bón phân cân đối"],
        fertilizing_advice="Giảm đạm, tăng kali",
        product_keywords=["thuốc trừ bệnh đạo ôn"],
    ),
    Disease(
        id="coffee-rust",
        name="Bệnh gỉ sắt",
        english_name="Coffee leaf rust",
        plant_type_id="coffee",
        severity="High",
        symptoms=[
            DiseaseSymptom("orange-pustules", 0.6, is_primary=True, affected_part="leaf"),
            DiseaseSymptom("yellow-leaves", 0.2, affected_part="leaf"),
            DiseaseSymptom("leaf-drop", 0.2, affected_part="leaf"),
        ],
        causes=["Nấm Hemileia vastatrix"],
        immediate_actions=["Phun thuốc gốc đồng", "Thu gom lá rụng"],
        prevention_tips=["Trồng giống kháng", "Tỉa cành thông thoáng"],
        product_keywords=["thuốc trừ nấm", "gốc đồng"],
    ),
    Disease(
        id="coconut-bud-rot",
        name="Bệnh thối đọt",
        english_name="Bud rot",
        plant_type_id="coconut",
        severity="Critical",
        symptoms=[
            DiseaseSymptom("bud-rot", 0.7, is_primary=True, affected_part="stem"),
            DiseaseSymptom("yellow-leaves", 0.15, affected_part="leaf"),
            DiseaseSymptom("wilting", 0.15, affected_part="general"),
        ],
        causes=["Nấm Phytophthora palmivora", "Mưa nhiều kéo dài"],
        immediate_actions=["Cắt bỏ phần đọt thối", "Quét thuốc gốc đồng lên vết cắt"],
        prevention_tips=["Vệ sinh vườn", "Thoát nước tốt"],
        product_keywords=["thuốc trừ nấm", "Phytophthora"],
    ),
    Disease(
        id="pothos-root-rot",
        name="Bệnh thối rễ",
        english_name="Root rot",
        plant_type_id="pothos",
        severity="High",
        symptoms=[
            DiseaseSymptom("root-rot", 0.5, is_primary=True, affected_part="root"),
            DiseaseSymptom("wilting", 0.3, affected_part="general"),
            DiseaseSymptom("yellow-leaves", 0.2, affected_part="leaf"),
        ],
        causes=["Tưới quá nhiều", "Đất thoát nước kém"],
        immediate_actions=["Nhấc cây, cắt bỏ rễ thối", "Thay đất mới thoát nước tốt"],
        watering_advice="Chỉ tưới khi mặt đất khô 2-3 cm",
        product_keywords=["đất trồng", "chậu thoát nước"],
    ),
]
