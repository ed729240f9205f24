# Render: Markdown, shortcodes and Jinja2 layouts
"""
Rendering modules:
- markdown: Markdown to HTML, summaries, table of contents
- shortcodes: {{< >}} and {{% %}} expansion
- templates: theme resolution, layout lookup, Jinja2 environment
"""
