"""
Manual adapter: turns a change into human-readable instructions.

Used for projects without a CMS connection, for actions no CMS automates
(robots.txt, sitemap, internal links) and whenever credentials are rejected.
"""
import logging

from .base import BaseCMSAdapter, ModificationResult

logger = logging.getLogger(__name__)


def _as_list(value):
    if value is None or value == '':
        return []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value]
    return [line.strip() for line in str(value).splitlines() if line.strip()]


def build_instructions(modification):
    changes = modification.changes
    target = modification.target
    action_type = modification.action_type

    if action_type == 'meta':
        lines = [f'Update meta tags for {target}:']
        if changes.get('title'):
            lines.append(f'- Title: "{changes["title"]}"')
        if changes.get('description'):
            lines.append(f'- Description: "{changes["description"]}"')
        return '\n'.join(lines)

    if action_type == 'h1':
        return f'Update H1 tag on {target}:\nChange from: "{modification.before}"\nChange to: "{changes.get("h1", "")}"'

    if action_type == 'altText':
        return f'Add alt text to image:\nImage: {target}\nAlt text: "{changes.get("altText", "")}"'

    if action_type == 'robots':
        return f'Update robots.txt file with:\n{changes.get("robotsContent", "")}'

    if action_type == 'sitemap':
        urls = '\n'.join(_as_list(changes.get('urls')))
        return f'Update sitemap.xml with these URLs:\n{urls}'

    if action_type == 'internalLinks':
        links = changes.get('links')
        if isinstance(links, list) and links and isinstance(links[0], dict):
            rendered = '\n'.join(f'- Link "{link.get("text", "")}" to {link.get("url", "")}' for link in links)
        else:
            rendered = '\n'.join(f'- {link}' for link in _as_list(links))
        return f'Add internal links to {target}:\n{rendered}'

    return f'Manual action required for {action_type}'


class ManualAdapter(BaseCMSAdapter):
    provider = 'manual'
    label = 'Manual'

    def __init__(self, credentials=None, config=None, session=None):
        super().__init__(credentials, config=config, session=session)

    def apply(self, modification):
        instructions = build_instructions(modification)
        logger.info("Generated manual instructions for %s on %s", modification.action_type, modification.target)
        return ModificationResult(
            success=True,
            rollback_data={
                'type': 'manual',
                'actionType': modification.action_type,
                'target': modification.target,
                'instructions': instructions,
                'originalValue': modification.before,
            },
            message='Manual instructions generated',
            instructions=instructions,
        )

    def revert(self, rollback_data):
        rollback_data = rollback_data or {}
        original = rollback_data.get('originalValue') or ''
        target = rollback_data.get('target') or 'the page'
        lines = [f'Undo the previous manual change on {target}.']
        if original:
            lines.append(f'Restore the original value: "{original}"')
        if rollback_data.get('instructions'):
            lines.append(f'Change that was requested:\n{rollback_data["instructions"]}')
        return ModificationResult(
            success=True,
            message='Manual rollback instructions generated',
            instructions='\n'.join(lines),
        )
