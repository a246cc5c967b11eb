"""
Starter snippets used to seed a newly created room's document
"""

from .models import Language

DEFAULT_TEMPLATES = {
    Language.JAVASCRIPT: 'console.log("Hello from JavaScript");\n',
    Language.PYTHON: 'print("Hello from Python")\n',
    Language.CPP: (
        '#include <iostream>\n'
        'using namespace std;\n'
        'int main(){ cout<<"Hello from C++"<<"\\n"; return 0; }\n'
    ),
}

DEFAULT_LANGUAGE = Language.JAVASCRIPT


def get_default_template(language: Language = DEFAULT_LANGUAGE) -> str:
    """Return the starter snippet for a language"""
    return DEFAULT_TEMPLATES[Language(language)]
