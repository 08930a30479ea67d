"""
Template catalog — named system-prompt fragments and starter documents.

Loaded once at import; read-only afterwards. The router prepends the
selected template's prompt to the base full-stack instruction.
"""

from __future__ import annotations

from dataclasses import dataclass

FULL_STACK_SYSTEM_PROMPT = """You are an expert full-stack developer.
Always generate a complete, production-ready full-stack application based on the requested tech stack.
The output MUST follow this specific format for each file:

# /path/to/file.ext
```extension
file content here
```

You must include:
1. /frontend (React/Next.js/etc. with Tailwind CSS)
2. /backend (Node.js/Express/Flask/etc.)
3. Database schema (prisma/schema.prisma or SQLite/SQL)
4. Full package.json files for both frontend and backend
5. Dockerfile and docker-compose.yml
6. A detailed README.md with setup and run commands.

Focus on clean, modular code and follow best practices for the chosen stack."""


@dataclass(frozen=True)
class TemplateRecord:
    id: str
    name: str
    description: str
    system_prompt: str
    html: str | None = None

    def summary(self) -> dict:
        return {"id": self.id, "name": self.name, "description": self.description}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "systemPrompt": self.system_prompt,
            "html": self.html,
        }


_BASE_HTML = """<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{title}</title>
  <script src="https://cdn.tailwindcss.com"></script>
</head>
<body class="{body_class}">
{body}
</body>
</html>
"""


def _page(title: str, body: str, body_class: str = "min-h-screen bg-white text-gray-900") -> str:
    return _BASE_HTML.format(title=title, body=body, body_class=body_class)


TEMPLATES: tuple[TemplateRecord, ...] = (
    TemplateRecord(
        id="blank",
        name="Blank Page",
        description="An empty Tailwind page to build from scratch.",
        system_prompt=(
            "You are building a single-page website from an empty document. "
            "Return one complete HTML file using Tailwind CSS from the CDN."
        ),
        html=_page("New Site", '  <main class="p-8"></main>'),
    ),
    TemplateRecord(
        id="landing",
        name="Landing Page",
        description="A marketing landing page with hero, features and call to action.",
        system_prompt=(
            "You are designing a conversion-focused landing page. Include a hero "
            "section, a feature grid, social proof and a clear call to action. "
            "Keep the layout responsive and accessible."
        ),
        html=_page(
            "Landing Page",
            '  <header class="px-8 py-24 text-center">\n'
            '    <h1 class="text-5xl font-bold">Your product, explained in one line</h1>\n'
            '    <a href="#" class="mt-8 inline-block rounded bg-indigo-600 px-6 py-3 text-white">Get started</a>\n'
            '  </header>',
        ),
    ),
    TemplateRecord(
        id="portfolio",
        name="Portfolio",
        description="A personal portfolio with projects, about and contact sections.",
        system_prompt=(
            "You are building a personal portfolio site. Showcase projects as "
            "cards, include an about section and a contact form. Favor clean "
            "typography and generous whitespace."
        ),
        html=_page(
            "Portfolio",
            '  <main class="mx-auto max-w-4xl p-8">\n'
            '    <h1 class="text-4xl font-semibold">Hi, I\'m ...</h1>\n'
            '    <section id="projects" class="mt-12 grid gap-6 md:grid-cols-2"></section>\n'
            '  </main>',
        ),
    ),
    TemplateRecord(
        id="dashboard",
        name="Admin Dashboard",
        description="A data dashboard with sidebar navigation, stat cards and a table.",
        system_prompt=(
            "You are building an admin dashboard. Use a sidebar for navigation, "
            "stat cards for key metrics and a sortable data table. Use "
            "placeholder data generated in JavaScript."
        ),
        html=_page(
            "Dashboard",
            '  <div class="flex min-h-screen">\n'
            '    <aside class="w-64 bg-gray-900 p-6 text-gray-100">Menu</aside>\n'
            '    <main class="flex-1 p-8"></main>\n'
            '  </div>',
            body_class="bg-gray-100 text-gray-900",
        ),
    ),
    TemplateRecord(
        id="blog",
        name="Blog",
        description="A content-first blog layout with article list and reading view.",
        system_prompt=(
            "You are building a blog. Provide an article index and an article "
            "reading view with comfortable line length and readable typography."
        ),
        html=_page(
            "Blog",
            '  <main class="mx-auto max-w-2xl p-8">\n'
            '    <h1 class="text-3xl font-bold">Latest posts</h1>\n'
            '    <ul id="posts" class="mt-8 space-y-6"></ul>\n'
            '  </main>',
        ),
    ),
)

# Full-stack briefs, used as the template system prompt.
_FULLSTACK_BRIEFS = (
    (
        "todo",
        "Todo App",
        "A simple task management application with a frontend and backend.",
        "Create a Todo application with React (frontend) and Express (backend). "
        "Include features like adding, editing, deleting tasks, and marking them "
        "as complete. Use SQLite for the database.",
    ),
    (
        "saas",
        "SaaS Landing Page",
        "A professional landing page for a SaaS product with a contact form.",
        "Create a SaaS landing page with React (frontend) and Express (backend). "
        "Include sections for features, pricing, testimonials, and a contact form "
        "that saves inquiries to a database.",
    ),
    (
        "ecommerce",
        "E-commerce Storefront",
        "A basic e-commerce store with product listing and a shopping cart.",
        "Create an e-commerce storefront with React (frontend) and Express (backend). "
        "Include a product list, a shopping cart, and a checkout simulation. "
        "Products should be fetched from the backend.",
    ),
    (
        "ai_wrapper",
        "AI Wrapper",
        "An AI-powered application that uses an LLM API to process user input.",
        "Create an AI wrapper application with React (frontend) and Express (backend). "
        "The backend should proxy requests to an AI API (like OpenAI) and return "
        "the results to the frontend.",
    ),
)

TEMPLATES += tuple(
    TemplateRecord(id=tid, name=name, description=desc, system_prompt=brief)
    for tid, name, desc, brief in _FULLSTACK_BRIEFS
)


class TemplateCatalog:
    """Ordered, read-only lookup over TemplateRecords."""

    def __init__(self, records: tuple[TemplateRecord, ...] = TEMPLATES):
        self._records = tuple(records)
        self._by_id = {r.id: r for r in self._records}
        if len(self._by_id) != len(self._records):
            raise ValueError("Duplicate template id in catalog")

    def __len__(self) -> int:
        return len(self._records)

    def list(self) -> list[dict]:
        """Id, name and description only; prompts and bodies stay private."""
        return [r.summary() for r in self._records]

    def get(self, template_id: str | None) -> TemplateRecord | None:
        if not template_id:
            return None
        return self._by_id.get(template_id)

    def compose_system_prompt(self, template_id: str | None = None, stack: str | None = None) -> str:
        """Template fragment + base instruction, with an optional stack hint in front."""
        template = self.get(template_id)
        if template and template.system_prompt:
            prompt = f"{template.system_prompt}\n\n{FULL_STACK_SYSTEM_PROMPT}"
        else:
            prompt = FULL_STACK_SYSTEM_PROMPT
        if stack:
            prompt = f"Project Stack: {stack}\n\n{prompt}"
        return prompt
