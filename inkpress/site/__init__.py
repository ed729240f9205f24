# Site: URLs, taxonomies, pagination, feeds and the build pipeline
"""
Site assembly modules:
- urls: slugs, permalinks, output paths
- taxonomy: tags, categories, authors
- paginate: list pagination
- feeds: RSS and sitemap
- builder: the build pipeline
- check: content validation without rendering
"""
