"""Prompt templates for the two conversion stages and their rendering."""

from __future__ import annotations

import re
from typing import Mapping

SAMPLE_C_CODE = r"""#include <stdio.h>
#include <stdlib.h>
#include <string.h>

typedef struct {
    char* data;
    size_t length;
} String;

String* create_string(const char* input) {
    String* str = malloc(sizeof(String));
    str->length = strlen(input);
    str->data = malloc(str->length + 1);
    strcpy(str->data, input);
    return str;
}

void free_string(String* str) {
    free(str->data);
    free(str);
}

int main() {
    String* greeting = create_string("Hello, World!");
    printf("%s\n", greeting->data);
    free_string(greeting);
    return 0;
}"""

DEFAULT_SYSTEM_PROMPT = "You are a helpful assistant that converts C/C++ code to Zig."

DEFAULT_ANALYSIS_PROMPT = """Analyze this C/C++ code and create a detailed Zig conversion plan.

C/C++ Code:
```c
{{CODE}}
```

Provide a comprehensive analysis including:

1. **Safety Issues**: List unsafe patterns (buffer overflows, raw pointers, manual memory management, null pointer risks)
2. **Memory Management Analysis**: Complexity score (1-10) and key concerns
3. **Conversion Strategy**: Step-by-step approach for converting to Zig
4. **Type Mappings**: C types → Zig types (e.g., char* → []const u8, malloc → allocator.alloc)
5. **Memory Management**: How to handle allocators and ownership
6. **Error Handling**: Converting C error patterns to Zig error unions
{{TEST_STRATEGY}}

Keep it detailed but concise. This plan will be used directly for code generation."""

DEFAULT_GENERATION_PROMPT = """Convert this C/C++ code to Zig following the analysis and conversion plan.

Safety Level: {{SAFETY_LEVEL}}
{{SAFETY_HINTS}}

Conversion Plan:
{{ANALYSIS}}

C/C++ Code:
```c
{{CODE}}
```

Generate complete, working Zig code. Include:
- Proper memory management with allocators (use std.heap.GeneralPurposeAllocator or appropriate allocator)
- Error handling with error unions (error!)
- Type safety with Zig's type system
- Proper ownership and lifetime management
{{TEST_INCLUSION}}
{{COMMENT_PRESERVATION}}

Output only the Zig code with helpful comments explaining key conversions."""

SAFETY_HINTS = {
    "strict": "Use strict safety: allocators, error unions, no unsafe blocks",
    "balanced": "Balance safety and C compatibility where needed",
    "permissive": "Allow some unsafe for direct C interop",
}

TEST_STRATEGY_LINE = "7. **Test Strategy**: Outline basic tests using std.testing"
TEST_INCLUSION_LINE = "- Basic tests using std.testing"
COMMENT_PRESERVATION_LINE = "- Preserve original intent in comments"

_PLACEHOLDER = re.compile(r"\{\{(\w+)\}\}")


def fill_template(template: str, variables: Mapping[str, str]) -> str:
    """Substitute ``{{NAME}}`` placeholders; unknown names are left untouched."""

    def _sub(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in variables:
            return variables[key]
        return match.group(0)

    return _PLACEHOLDER.sub(_sub, template)


def render_analysis_prompt(template: str, code: str, *, generate_tests: bool) -> str:
    return fill_template(
        template,
        {
            "CODE": code,
            "TEST_STRATEGY": TEST_STRATEGY_LINE if generate_tests else "",
        },
    )


def render_generation_prompt(
    template: str,
    code: str,
    analysis: str,
    *,
    safety_level: str,
    generate_tests: bool,
    preserve_comments: bool,
) -> str:
    return fill_template(
        template,
        {
            "SAFETY_LEVEL": safety_level,
            "SAFETY_HINTS": SAFETY_HINTS[safety_level],
            "ANALYSIS": analysis,
            "CODE": code,
            "TEST_INCLUSION": TEST_INCLUSION_LINE if generate_tests else "",
            "COMMENT_PRESERVATION": COMMENT_PRESERVATION_LINE if preserve_comments else "",
        },
    )
