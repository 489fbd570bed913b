# Supabase table: polls
# This file documents the expected database schema
# Actual operations go through the persistence gateway (app/database)

"""
Expected Supabase table structure:

polls:
- id: uuid (primary key, default: gen_random_uuid())
- group_id: uuid (foreign key to groups.id, on delete cascade, not null)
- creator_id: uuid (not null)
- creator_name: text (not null)
- type: text (not null) - values: movie, place
- external_id: text (not null, default: '') - TMDB id, Google place id or osm_<type>_<id>
- title: text (not null)
- description: text (default: '')
- image: text (default: '')
- choices: text[] (default: '{join,maybe,no}')
- active: boolean (not null, default: true)
- metadata: jsonb (default: '{}') - date, time, rating, release_date, types, latitude, longitude, source
- created_at: timestamp (default: now())

Index: (group_id, active). At most one active poll per group is maintained by
the service, not by a unique index.
"""
