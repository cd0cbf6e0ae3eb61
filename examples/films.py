#!/usr/bin/env python3
"""Films demo: descriptions, middleware and a query, all in memory.

Run it directly, or point the CLI at it:

    gql-descql sdl -a examples/films.py:api
    gql-descql query -a examples/films.py:api '{ person(id: 1) { name films { title } } }'
"""

import asyncio
import json
from datetime import date as Date

from gql_descql.core import Api, array, date, lazy, number, obj, string
from gql_descql.middleware import ResponseCache

PEOPLE = {
    1: {"name": "Spike Jonze", "film_ids": ["her", "adaptation"]},
}
FILMS = {
    "her": {"title": "Her", "producers": ["Annapurna"], "release_date": Date(2013, 12, 18)},
    "adaptation": {"title": "Adaptation", "producers": ["Kaufman"], "release_date": Date(2002, 12, 6)},
}

Film = obj({
    "title": string(),
    "producers": array(string()),
    "release_date": date(),
    "director": lazy(lambda: Person),
}).meta(name="Film")

Person = obj({
    "name": string(),
    "films": array(Film),
}).meta(name="Person")

api = Api({
    "query": {
        "person": Person.meta(args={"id": number().integer().required()}),
        "film": Film.meta(args={"id": string().required()}),
    }
})

cache = ResponseCache()
api.on("query", cache.get)


@api.on("query.film")
async def load_film(ctx):
    ctx.response["film"] = dict(FILMS[ctx.request.arguments["id"]])


@api.on("query.person")
async def load_person(ctx):
    person = PEOPLE[ctx.request.arguments["id"]]
    ctx.response["person"] = {"name": person["name"]}
    ctx.state["film_ids"] = person["film_ids"]


@api.on("query.person.fields.films")
async def load_films(ctx):
    ctx.response["person"]["films"] = [dict(FILMS[i]) for i in ctx.state["film_ids"]]


api.on("query", cache.set)


async def main():
    query = """
    {
      film(id: "her") { title release_date }
      person(id: 1) {
        name
        films { title producers }
      }
    }
    """
    print(api.print_schema())
    print()
    result = await api.execute(query)
    print(json.dumps(result.formatted, indent=2))


if __name__ == "__main__":
    asyncio.run(main())
