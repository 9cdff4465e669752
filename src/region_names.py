"""
Region name lookup for US state choropleths.

The boundary GeoJSON keys its features by full state name ('California'),
while tabular exports usually carry the two-letter postal abbreviation ('CA').
"""

from types import MappingProxyType

# Mapping state abbreviations to full names because the GeoJSON uses full names
STATE_ABBR_TO_NAME = MappingProxyType({
    'AL': 'Alabama', 'AK': 'Alaska', 'AZ': 'Arizona', 'AR': 'Arkansas',
    'CA': 'California', 'CO': 'Colorado', 'CT': 'Connecticut', 'DE': 'Delaware',
    'FL': 'Florida', 'GA': 'Georgia', 'HI': 'Hawaii', 'ID': 'Idaho',
    'IL': 'Illinois', 'IN': 'Indiana', 'IA': 'Iowa', 'KS': 'Kansas',
    'KY': 'Kentucky', 'LA': 'Louisiana', 'ME': 'Maine', 'MD': 'Maryland',
    'MA': 'Massachusetts', 'MI': 'Michigan', 'MN': 'Minnesota', 'MS': 'Mississippi',
    'MO': 'Missouri', 'MT': 'Montana', 'NE': 'Nebraska', 'NV': 'Nevada',
    'NH': 'New Hampshire', 'NJ': 'New Jersey', 'NM': 'New Mexico', 'NY': 'New York',
    'NC': 'North Carolina', 'ND': 'North Dakota', 'OH': 'Ohio', 'OK': 'Oklahoma',
    'OR': 'Oregon', 'PA': 'Pennsylvania', 'RI': 'Rhode Island', 'SC': 'South Carolina',
    'SD': 'South Dakota', 'TN': 'Tennessee', 'TX': 'Texas', 'UT': 'Utah',
    'VT': 'Vermont', 'VA': 'Virginia', 'WA': 'Washington', 'WV': 'West Virginia',
    'WI': 'Wisconsin', 'WY': 'Wyoming',
})


def normalize(code: str) -> str:
    """
    Convert a state abbreviation to the state name used by the boundary data.

    Args:
        code: Trimmed abbreviation, matched case-sensitively (e.g., 'CA')

    Returns:
        Full state name (e.g., 'California'), or the code unchanged if it is
        not a known abbreviation
    """
    return STATE_ABBR_TO_NAME.get(code, code)
