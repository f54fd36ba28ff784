"""
Push the seed knowledge base (plant types, symptoms, diseases) to Supabase

Run after migrations/001_diagnosis_tables.sql:
    python scripts/seed_knowledge_base.py
"""
import os
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from supabase import create_client

from plantdoc.config import SUPABASE_KEY, SUPABASE_URL
from plantdoc.services.knowledge_seed import DISEASES, PLANT_TYPES, SYMPTOMS


def build_rows():
    plant_rows = [
        {
            "id": p.id,
            "name": p.name,
            "scientific_name": p.scientific_name,
            "family": p.family,
            "is_active": p.is_active,
        }
        for p in PLANT_TYPES
    ]
    symptom_rows = [
        {
            "id": s.id,
            "name": s.name,
            "category": s.category,
            "weight": s.weight,
            "synonyms": list(s.synonyms),
        }
        for s in SYMPTOMS
    ]
    disease_rows = []
    link_rows = []
    for d in DISEASES:
        disease_rows.append({
            "id": d.id,
            "disease_name": d.name,
            "english_name": d.english_name,
            "plant_type_id": d.plant_type_id,
            "description": d.description,
            "severity": d.severity,
            "causes": d.causes,
            "immediate_actions": d.immediate_actions,
            "long_term_care": d.long_term_care,
            "prevention_tips": d.prevention_tips,
            "watering_advice": d.watering_advice,
            "lighting_advice": d.lighting_advice,
            "fertilizing_advice": d.fertilizing_advice,
            "product_keywords": d.product_keywords,
            "notes": d.notes,
            "is_active": d.is_active,
        })
        for link in d.symptoms:
            link_rows.append({
                "disease_id": d.id,
                "symptom_id": link.symptom_id,
                "weight": link.weight,
                "is_primary": link.is_primary,
                "affected_part": link.affected_part,
            })
    return plant_rows, symptom_rows, disease_rows, link_rows


def seed_knowledge_base():
    print("=" * 60)
    print("Seeding knowledge base")
    print("=" * 60)

    if not (SUPABASE_URL and SUPABASE_KEY):
        print("SUPABASE_URL / SUPABASE_KEY not set")
        return False

    supabase = create_client(SUPABASE_URL, SUPABASE_KEY)
    plant_rows, symptom_rows, disease_rows, link_rows = build_rows()

    for table, rows in (
        ("plant_types", plant_rows),
        ("symptom_dictionary", symptom_rows),
        ("diseases", disease_rows),
        ("disease_symptoms", link_rows),
    ):
        supabase.table(table).upsert(rows).execute()
        print(f"  ✓ {table}: {len(rows)} rows")

    print("\nDone.")
    return True


if __name__ == "__main__":
    seed_knowledge_base()
