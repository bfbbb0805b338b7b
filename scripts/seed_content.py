"""Seed a demo article with an author reference and JSON/XML REST exposure.

Run from the project root against the configured DATABASE_URL, before
starting the server (field and REST configuration are read at startup):

    python -m scripts.seed_content

then fetch the article and look at its Link headers:

    curl -sI http://localhost:8000/node/<id>
"""

import asyncio

from sqlalchemy import select

from models.entity import ContentEntity, EntityReferenceItem
from models.field import FieldConfig, FieldType
from models.rest import RestResourceConfigRecord, rest_config_id
from services.accounts import ensure_admin_account
from services.database import AsyncSessionLocal, init_db


async def main():
    await init_db()

    async with AsyncSessionLocal() as db:
        await ensure_admin_account(db)

        # make sure we're not seeding twice
        existing = await db.scalar(
            select(FieldConfig.id).where(
                FieldConfig.entity_type == "node",
                FieldConfig.bundle == "article",
                FieldConfig.field_name == "field_author",
            )
        )
        if existing is not None:
            raise RuntimeError("Demo content already seeded.")

        db.add(
            FieldConfig(
                entity_type="node",
                bundle="article",
                field_name="field_author",
                label="Author",
                field_type=FieldType.ENTITY_REFERENCE.value,
                target_type="user",
            )
        )

        author = ContentEntity(entity_type="user", bundle="user", label="Herman Melville")
        db.add(author)
        await db.flush()

        article = ContentEntity(
            entity_type="node",
            bundle="article",
            label="Moby Dick",
            references=[
                EntityReferenceItem(
                    field_name="field_author",
                    delta=0,
                    target_type="user",
                    target_id=author.id,
                )
            ],
        )
        db.add(article)

        if await db.get(RestResourceConfigRecord, rest_config_id("node")) is None:
            db.add(
                RestResourceConfigRecord(
                    id=rest_config_id("node"),
                    plugin_id="entity:node",
                    configuration={
                        "GET": {"supported_formats": ["json", "xml"], "supported_auth": ["cookie"]}
                    },
                )
            )

        await db.commit()
        print(f"Seeded node {article.id} referencing user {author.id}.")


if __name__ == "__main__":
    asyncio.run(main())
