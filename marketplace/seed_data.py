"""Initial category trees for construction materials and services."""

PRODUCT_CATEGORIES = [
    {
        'name': 'Aggregates',
        'description': 'Sand, gravel and crushed stone',
        'subcategories': ['Sand', 'Gravel', 'Crushed Stone', 'Fill Material'],
    },
    {
        'name': 'Cement & Concrete',
        'description': 'Binders, ready-mix and precast elements',
        'subcategories': ['Portland Cement', 'Ready-Mix Concrete', 'Mortar', 'Precast Elements'],
    },
    {
        'name': 'Steel & Metals',
        'description': 'Reinforcement and structural steel',
        'subcategories': ['Rebar', 'Wire Mesh', 'Structural Profiles', 'Sheet Metal'],
    },
    {
        'name': 'Masonry',
        'subcategories': ['Bricks', 'Concrete Blocks', 'Natural Stone'],
    },
    {
        'name': 'Wood & Timber',
        'subcategories': ['Lumber', 'Plywood', 'Formwork'],
    },
    {
        'name': 'Plumbing',
        'subcategories': ['Pipes', 'Fittings', 'Valves'],
    },
    {
        'name': 'Electrical',
        'subcategories': ['Cables', 'Conduits', 'Panels & Breakers'],
    },
    {
        'name': 'Finishes',
        'subcategories': ['Paint', 'Tiles', 'Drywall', 'Insulation'],
    },
]

SERVICE_CATEGORIES = [
    {
        'name': 'Equipment Rental',
        'description': 'Machinery rented with or without operator',
        'subcategories': ['Excavators', 'Cranes', 'Concrete Pumps', 'Scaffolding'],
    },
    {
        'name': 'Transport',
        'subcategories': ['Bulk Haulage', 'Flatbed Delivery', 'Water Trucks'],
    },
    {
        'name': 'Construction Works',
        'subcategories': ['Earthworks', 'Demolition', 'Concrete Works', 'Masonry Works'],
    },
    {
        'name': 'Installations',
        'subcategories': ['Electrical Installation', 'Plumbing Installation', 'HVAC'],
    },
    {
        'name': 'Professional Services',
        'subcategories': ['Surveying', 'Soil Testing', 'Structural Engineering'],
    },
]
