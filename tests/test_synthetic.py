from gen_synthetic_signups import generate_record_id, generate_signups

from grouping.engine import bucket_signups
from grouping.ingest import signups_from_df

import pandas as pd


def test_generate_signups_is_seeded():
    first = [(s.date_preference, s.sections) for s in generate_signups(20, seed=7).signups]
    second = [(s.date_preference, s.sections) for s in generate_signups(20, seed=7).signups]
    assert first == second


def test_generated_rows_feed_the_engine():
    batch = generate_signups(30, seed=1)
    df = pd.DataFrame([s.model_dump() for s in batch.signups])
    signups = signups_from_df(df)
    assert len({s.id for s in signups}) == 30
    assert sum(len(v) for v in bucket_signups(signups).values()) == 30


def test_record_id_shape():
    rec_id = generate_record_id()
    assert rec_id.startswith("rec")
    assert len(rec_id) == 17


def test_record_ids_follow_the_seed():
    first = [s.id for s in generate_signups(10, seed=7).signups]
    second = [s.id for s in generate_signups(10, seed=7).signups]
    other = [s.id for s in generate_signups(10, seed=8).signups]
    assert first == second
    assert first != other
    assert all(rec_id.startswith("rec") and len(rec_id) == 17 for rec_id in first)
